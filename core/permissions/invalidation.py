"""
Cache-invalidation signal for mutated resources.

Sent after every successful mutation so cached views under the resource
type's UI path can be refreshed. Receivers are notifications only: an
exception in a receiver is logged and never fails the mutation.
"""
from blinker import Namespace

from core.resources.registry import get_ui_path

_signals = Namespace()

resource_changed = _signals.signal('resource-changed')


def notify_resource_changed(resource_type, resource_id):
    """Emit ``resource_changed`` for one record."""
    path = get_ui_path(resource_type)
    for receiver in list(resource_changed.receivers_for(resource_type)):
        try:
            receiver(resource_type, resource_id=str(resource_id), path=path)
        except Exception as e:
            print(f"[perm] invalidation receiver failed for "
                  f"{resource_type}/{resource_id}: {e}")
    return path
