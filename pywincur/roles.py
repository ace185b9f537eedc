"""The customizable Windows cursor roles.

Each role pairs the OCR_* system cursor id used by SetSystemCursor with the
value name under HKCU\\Control Panel\\Cursors and the label shown in the
Windows mouse settings.
"""

from dataclasses import dataclass
from types import MappingProxyType

__all__ = ('CursorRole', 'CURSOR_ROLES', 'role_by_name', 'role_by_id', 'role_by_registry_key')


@dataclass(frozen=True)
class CursorRole:
    id: int
    name: str
    registry_key: str
    display_name: str


CURSOR_ROLES = (
    CursorRole(32512, 'Normal', 'Arrow', 'Normal select'),
    CursorRole(32513, 'IBeam', 'IBeam', 'Text select'),
    CursorRole(32649, 'Hand', 'Hand', 'Link select'),
    CursorRole(32514, 'Wait', 'Wait', 'Busy'),
    CursorRole(32645, 'SizeNS', 'SizeNS', 'Vertical resize'),
    CursorRole(32644, 'SizeWE', 'SizeWE', 'Horizontal resize'),
    CursorRole(32642, 'SizeNWSE', 'SizeNWSE', 'Diagonal resize 1'),
    CursorRole(32643, 'SizeNESW', 'SizeNESW', 'Diagonal resize 2'),
    CursorRole(32646, 'SizeAll', 'SizeAll', 'Move'),
    CursorRole(32651, 'Help', 'Help', 'Help select'),
    CursorRole(32648, 'No', 'No', 'Unavailable'),
    CursorRole(32650, 'AppStarting', 'AppStarting', 'Working in background'),
    CursorRole(32516, 'Up', 'UpArrow', 'Alternate select'),
    CursorRole(32515, 'Cross', 'Cross', 'Precision select'),
    CursorRole(32631, 'Pen', 'Pen', 'Pen'),
)

_BY_NAME = MappingProxyType({role.name.lower(): role for role in CURSOR_ROLES})
_BY_ID = MappingProxyType({role.id: role for role in CURSOR_ROLES})
_BY_REGISTRY_KEY = MappingProxyType({role.registry_key.lower(): role for role in CURSOR_ROLES})


def role_by_name(name: str):
    return _BY_NAME.get(name.lower())


def role_by_id(cursor_id: int):
    return _BY_ID.get(cursor_id)


def role_by_registry_key(key: str):
    return _BY_REGISTRY_KEY.get(key.lower())
