"""Unit tests for the toast notifier."""

import asyncio

import pytest

from paintcal.core.errors import classify_error_with_response
from paintcal.services.notification_service import Notifier, ToastKind


@pytest.mark.unit
class TestNotifier:
    """Tests for Notifier."""

    def test_notify_records_visible_toast(self, notifier):
        toast = notifier.success("Task scheduled successfully")

        assert toast.kind == ToastKind.SUCCESS
        assert notifier.toasts == [toast]
        assert notifier.history == [toast]

    def test_ids_increase(self, notifier):
        first = notifier.info("a")
        second = notifier.error("b")

        assert second.id > first.id
        assert second.kind == ToastKind.ERROR

    def test_dismiss(self, notifier):
        toast = notifier.success("done")

        notifier.dismiss(toast.id)
        notifier.dismiss(999)

        assert notifier.toasts == []
        assert notifier.history == [toast]

    def test_listener_sees_changes_until_removed(self, notifier):
        seen: list[int] = []
        unlisten = notifier.add_listener(lambda toasts: seen.append(len(toasts)))

        toast = notifier.success("one")
        notifier.dismiss(toast.id)
        unlisten()
        notifier.success("two")

        assert seen == [1, 0]

    def test_error_from_uses_classified_message(self, notifier):
        toast = notifier.error_from(classify_error_with_response(PermissionError("Permission denied: can_drag")))

        assert toast.message == "You don't have permission for this action."
        assert toast.kind == ToastKind.ERROR

    async def test_toast_expires_after_duration(self):
        notifier = Notifier(duration_ms=10)

        notifier.success("brief")
        assert len(notifier.toasts) == 1

        await asyncio.sleep(0.05)
        assert notifier.toasts == []

    async def test_clear_cancels_expiry(self):
        notifier = Notifier(duration_ms=10)
        notifier.success("a")
        notifier.success("b")

        notifier.clear()

        assert notifier.toasts == []
        assert len(notifier.history) == 2

    def test_no_loop_means_no_expiry(self):
        notifier = Notifier(duration_ms=10)

        notifier.success("sticky")

        assert len(notifier.toasts) == 1
