"""!
@brief Registry helpers used by the tweak implementations.
@details Thin wrappers over :mod:`winreg` that always close handles and give
tweaks a uniform failure surface: ``PermissionError`` when the key is
protected, ``FileNotFoundError`` when it is missing, and
:class:`RegistryUnavailableError` on hosts without a Windows registry.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List

try:  # pragma: no cover - exercised through mocks on non-Windows platforms.
    import winreg
except ImportError:  # pragma: no cover - handled gracefully during tests.
    winreg = None  # type: ignore[assignment]


class RegistryUnavailableError(RuntimeError):
    """!
    @brief Raised when the Windows registry APIs cannot be used on this host.
    """


def _ensure_winreg() -> None:
    if winreg is None:
        raise RegistryUnavailableError("Windows registry APIs are unavailable on this platform")


@contextmanager
def open_key(root: int, path: str, access: int | None = None, *, create: bool = False) -> Iterator[Any]:
    """!
    @brief Open (or create) ``root``/``path`` and close the handle on exit.
    @param create Use ``CreateKeyEx`` so missing keys are created.
    """

    _ensure_winreg()
    access_mask = access if access is not None else winreg.KEY_READ  # type: ignore[union-attr]
    if create:
        handle = winreg.CreateKeyEx(root, path, 0, access_mask)  # type: ignore[union-attr]
    else:
        handle = winreg.OpenKey(root, path, 0, access_mask)  # type: ignore[union-attr]
    try:
        yield handle
    finally:
        winreg.CloseKey(handle)  # type: ignore[union-attr]


def set_dword(root: int, path: str, name: str, value: int, *, create: bool = False) -> None:
    """!
    @brief Write ``value`` as a ``REG_DWORD`` named ``name`` below ``root``/``path``.
    @details Writing the same value twice leaves the registry unchanged, which
    keeps the enable/disable tweaks idempotent.
    """

    _ensure_winreg()
    with open_key(root, path, winreg.KEY_SET_VALUE, create=create) as handle:  # type: ignore[union-attr]
        winreg.SetValueEx(handle, name, 0, winreg.REG_DWORD, int(value))  # type: ignore[union-attr]


def delete_value(root: int, path: str, name: str) -> bool:
    """!
    @brief Remove ``name`` from ``root``/``path``.
    @returns ``False`` when the value was already absent.
    """

    _ensure_winreg()
    with open_key(root, path, winreg.KEY_SET_VALUE) as handle:  # type: ignore[union-attr]
        try:
            winreg.DeleteValue(handle, name)  # type: ignore[union-attr]
        except FileNotFoundError:
            return False
    return True


def iter_subkeys(root: int, path: str) -> List[str]:
    """!
    @brief Return the names of the direct subkeys of ``root``/``path``.
    """

    _ensure_winreg()
    with open_key(root, path) as handle:
        subkey_count, _, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
        return [winreg.EnumKey(handle, index) for index in range(subkey_count)]  # type: ignore[union-attr]
