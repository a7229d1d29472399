"""Abstract base class for pluggable preference storage.

Preference I/O is synchronous and local: a string-keyed store with
get/set/remove semantics, the same contract browser local storage offers.
"""

# pylint: disable=unnecessary-ellipsis
# Ellipsis (...) is the standard Python idiom for abstract method bodies

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract string key-value storage interface.

    Keys arrive already namespaced (see ``preference_key``). Implementations
    raise PreferenceError when the backing medium fails; a missing key is
    not a failure.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Read a value.

        Parameters
        ----------
        key : str
            The namespaced key.

        Returns
        -------
        str or None
            The stored value, or None if the key is absent.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one.

        Parameters
        ----------
        key : str
            The namespaced key.
        value : str
            The serialized value.
        """
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error.

        Parameters
        ----------
        key : str
            The namespaced key.
        """
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """List every stored key.

        Returns
        -------
        list[str]
            Stored keys in no particular order.
        """
        ...
