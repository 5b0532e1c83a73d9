# countylocal/services/audit.py
# Voucher audit trail and admin action log.

from flask import current_app
from countylocal import db
from countylocal.models import VoucherAuditLog, AdminActionLog, Role

ACTOR_SYSTEM = 'SYSTEM'
ACTOR_VENDOR = 'VENDOR'
ACTOR_ADMIN = 'ADMIN'


class VoucherAction:
    ISSUED = 'ISSUED'
    ASSIGNED = 'ASSIGNED'
    REDEEMED = 'REDEEMED'
    REDEMPTION_FAILED = 'REDEMPTION_FAILED'
    CALLBACK_IDEMPOTENT_RETRY = 'CALLBACK_IDEMPOTENT_RETRY'
    EXPIRED_VIEWED = 'EXPIRED_VIEWED'


def add_voucher_audit(voucher_id, action, actor_type=ACTOR_SYSTEM, actor_id=None,
                      metadata=None, county_id=None):
    """
    Stages an audit entry in the current session without committing.

    Used inside issuance/redemption transactions so the entry commits
    (or rolls back) together with the state change it describes.
    """
    entry = VoucherAuditLog(
        voucher_id=voucher_id,
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        details=metadata or {},
        county_id=county_id,
    )
    db.session.add(entry)
    return entry


def log_voucher_audit(voucher_id, action, actor_type=ACTOR_SYSTEM, actor_id=None,
                      metadata=None, county_id=None):
    """
    Writes a standalone audit entry. Never raises: a failed audit write
    must not fail the request that triggered it.
    """
    try:
        add_voucher_audit(voucher_id, action, actor_type, actor_id, metadata, county_id)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to write voucher audit {action} for {voucher_id}: {str(e)}")


def get_voucher_audit_trail(voucher_id):
    entries = (VoucherAuditLog.query
               .filter_by(voucher_id=voucher_id)
               .order_by(VoucherAuditLog.created_at.asc())
               .all())
    return [entry.to_dict() for entry in entries]


# --- ADMIN ACTIONS ---

def log_admin_action(admin_user_id, action_type, target_entity_type, target_entity_id,
                     metadata=None, county_id=None):
    """Records an admin action. Failures are logged, never raised."""
    current_app.logger.info(
        f"[Admin Audit] {action_type} on {target_entity_type}:{target_entity_id} by {admin_user_id}"
    )
    try:
        db.session.add(AdminActionLog(
            admin_user_id=admin_user_id,
            action_type=action_type,
            target_entity_type=target_entity_type,
            target_entity_id=target_entity_id,
            details=metadata or {},
            county_id=county_id,
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to write admin audit {action_type}: {str(e)}")


def list_admin_actions(admin, county=None, action_type=None, target_entity_type=None,
                       limit=50, offset=0):
    """
    Lists admin actions, newest first.

    ADMIN callers are always scoped to a county; SUPER_ADMIN may list globally.
    """
    if county is None and admin.role != Role.SUPER_ADMIN:
        return ({"success": False, "error": "County context is required"}, 400)

    try:
        limit = min(max(int(limit), 1), 200)
        offset = max(int(offset), 0)
    except (TypeError, ValueError):
        return ({"success": False, "error": "limit and offset must be integers"}, 400)

    query = AdminActionLog.query
    if county is not None:
        query = query.filter(AdminActionLog.county_id == county.id)
    if action_type:
        query = query.filter(AdminActionLog.action_type == action_type)
    if target_entity_type:
        query = query.filter(AdminActionLog.target_entity_type == target_entity_type)

    total = query.count()
    entries = (query.order_by(AdminActionLog.created_at.desc())
               .offset(offset).limit(limit).all())

    return {
        "success": True,
        "actions": [entry.to_dict() for entry in entries],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
