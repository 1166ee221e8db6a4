from flask import request, jsonify, g

from utils.decorators import role_required, log_action
from utils.validators import parse_optional_id, parse_roster

from . import team_bp, get_roster_manager


@team_bp.route('/team/members', methods=['GET'])
@role_required('team')
def api_get_team_members():
    """获取当前队伍账号的名单；带 competitionId 时按该赛事的报名标记 registered"""
    competition_id = parse_optional_id(
        request.args.get('competitionId') or request.args.get('competition_id'),
        'competitionId',
    )
    team, members = get_roster_manager().get_roster(g.actor, competition_id)
    return jsonify({
        'success': True,
        'team': team.summary(),
        'members': [member.to_dict() for member in members],
    })


@team_bp.route('/team/members', methods=['PUT'])
@role_required('team')
@log_action('保存队伍名单')
def api_save_team_members():
    """保存队伍名单；带 competitionId 时同步该赛事下的报名记录"""
    members, competition_id = parse_roster(request.get_json(silent=True))
    team, members, summary, rejection = get_roster_manager().save_roster(g.actor, members, competition_id)
    data = {
        'success': True,
        'team': team.summary(),
        'members': [member.to_dict() for member in members],
    }
    if competition_id is not None:
        # 名单已保存；同步被拒时 sync 为 null，并给出原因
        data['sync'] = summary
        if rejection is not None:
            data['message'] = f'名单已保存，未同步报名：{rejection.message}'
            data['syncError'] = {'message': rejection.message, 'code': rejection.status_code}
    return jsonify(data)
