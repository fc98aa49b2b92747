import itertools
import pytest
from securestop.schemas import NotificationPrefs, RecipientGroup, Role
from securestop.visibility import is_visible, prefs_allow_message, recipients_include_viewer
from conftest import make_alert

EXPECTED = {
    (RecipientGroup.BOTH, Role.PARENT): True,
    (RecipientGroup.BOTH, Role.DRIVER): True,
    (RecipientGroup.BOTH, Role.ADMIN): True,
    (RecipientGroup.PARENTS, Role.PARENT): True,
    (RecipientGroup.PARENTS, Role.DRIVER): False,
    (RecipientGroup.PARENTS, Role.ADMIN): True,
    (RecipientGroup.SCHOOL, Role.PARENT): False,
    (RecipientGroup.SCHOOL, Role.DRIVER): True,
    (RecipientGroup.SCHOOL, Role.ADMIN): True,
    (RecipientGroup.DRIVER, Role.PARENT): False,
    (RecipientGroup.DRIVER, Role.DRIVER): True,
    (RecipientGroup.DRIVER, Role.ADMIN): True,
}


class TestRecipientMatrix:
    """Recipient group x viewer role inclusion."""

    def test_matrix_covers_every_pair(self):
        pairs = set(itertools.product(RecipientGroup, Role))
        assert pairs == set(EXPECTED)

    @pytest.mark.parametrize("recipients,viewer", list(EXPECTED))
    def test_matrix(self, recipients, viewer):
        assert recipients_include_viewer(recipients, viewer) is EXPECTED[(recipients, viewer)]

    @pytest.mark.parametrize("recipients,viewer", list(EXPECTED))
    def test_is_visible_matches_matrix_with_default_prefs(self, recipients, viewer):
        msg = make_alert(recipients=recipients.value, created_by_role="parent")
        assert is_visible(msg, viewer, NotificationPrefs()) is EXPECTED[(recipients, viewer)]


class TestPreferenceGating:
    """Notification preferences applied after the matrix."""

    @pytest.mark.parametrize("viewer", list(Role))
    def test_disabled_hides_everything(self, viewer):
        prefs = NotificationPrefs(enabled=False)
        for origin in Role:
            msg = make_alert(recipients="both", created_by_role=origin.value)
            assert not is_visible(msg, viewer, prefs)

    @pytest.mark.parametrize("recipients", list(RecipientGroup))
    def test_driver_alerts_opt_out(self, recipients):
        prefs = NotificationPrefs(receive_driver_alerts=False)
        msg = make_alert(recipients=recipients.value, created_by_role="driver")
        for viewer in Role:
            assert not is_visible(msg, viewer, prefs)

    @pytest.mark.parametrize("recipients", list(RecipientGroup))
    def test_admin_broadcast_opt_out(self, recipients):
        prefs = NotificationPrefs(receive_admin_broadcasts=False)
        msg = make_alert(recipients=recipients.value, created_by_role="admin")
        for viewer in Role:
            assert not is_visible(msg, viewer, prefs)

    def test_opt_outs_only_apply_to_their_origin(self):
        prefs = NotificationPrefs(receive_driver_alerts=False)
        assert prefs_allow_message(make_alert(created_by_role="admin"), prefs)
        prefs = NotificationPrefs(receive_admin_broadcasts=False)
        assert prefs_allow_message(make_alert(created_by_role="driver"), prefs)

    def test_parent_origin_passes_when_enabled(self):
        prefs = NotificationPrefs(receive_driver_alerts=False, receive_admin_broadcasts=False)
        assert prefs_allow_message(make_alert(created_by_role="parent"), prefs)
