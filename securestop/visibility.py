from .schemas import AlertMessage, NotificationPrefs, RecipientGroup, Role

# Recipient groups each viewer role sees; admin sees every group
_VIEWER_GROUPS = {
    Role.PARENT: frozenset({RecipientGroup.PARENTS, RecipientGroup.BOTH}),
    Role.DRIVER: frozenset({RecipientGroup.DRIVER, RecipientGroup.SCHOOL, RecipientGroup.BOTH}),
    Role.ADMIN: frozenset(RecipientGroup),
}


def recipients_include_viewer(recipients: RecipientGroup, viewer_role: Role) -> bool:
    """Check whether an alert addressed to `recipients` reaches `viewer_role`."""
    return RecipientGroup(recipients) in _VIEWER_GROUPS[Role(viewer_role)]


def prefs_allow_message(msg: AlertMessage, prefs: NotificationPrefs) -> bool:
    """Apply the viewer's notification preferences to an alert."""
    if not prefs.enabled:
        return False
    if msg.created_by_role == Role.DRIVER:
        return prefs.receive_driver_alerts
    if msg.created_by_role == Role.ADMIN:
        return prefs.receive_admin_broadcasts
    return True


def is_visible(msg: AlertMessage, viewer_role: Role, prefs: NotificationPrefs) -> bool:
    """Decide whether `msg` is shown to a viewer with the given role and prefs."""
    return recipients_include_viewer(msg.recipients, viewer_role) and prefs_allow_message(msg, prefs)
