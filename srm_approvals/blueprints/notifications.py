from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from srm_approvals.services.notification_service import NotificationService

notifications_bp = Blueprint('notifications', __name__)

@notifications_bp.route('/', methods=['GET'])
@login_required
def list_notifications():
    unread_only = request.args.get('unreadOnly') == 'true'
    limit = request.args.get('limit', 50, type=int)
    page = request.args.get('page', 1, type=int)
    return jsonify(NotificationService.list_for_user(current_user.id, unread_only, page, limit))

@notifications_bp.route('/', methods=['PATCH'])
@login_required
def mark_read():
    data = request.get_json(silent=True) or {}
    if data.get('markAllAsRead'):
        count = NotificationService.mark_read(current_user.id, mark_all=True)
        return jsonify({'success': True, 'updated': count})

    ids = data.get('notificationIds')
    if not ids or not isinstance(ids, list):
        return jsonify({'error': 'notificationIds array is required'}), 400
    count = NotificationService.mark_read(current_user.id, notification_ids=ids)
    return jsonify({'success': True, 'updated': count})

@notifications_bp.route('/<int:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    if not NotificationService.delete(current_user.id, notification_id):
        return jsonify({'error': 'Notification not found'}), 404
    return jsonify({'success': True})
