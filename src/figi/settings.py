"""
pydantic-settings integration.

LiveTableSettingsSource lets a pydantic-settings model read its fields
from a Figi live table, so an application can keep a typed, validated
settings object while Figi does the layering:

    class AppSettings(pydantic_settings.BaseSettings):
        database: DatabaseConfig
        debug: bool = False

    app_settings = cfg.to_settings(AppSettings)

Precedence inside the model is: constructor kwargs, then the live table,
then field defaults. pydantic-settings' own env/.env sources are not
consulted; the Figi env binder already feeds the live table.
"""

from __future__ import annotations

import collections.abc as _abc
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings

import figi.tree as tree

_SettingsT = _typing.TypeVar("_SettingsT")


class LiveTableSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """
    Settings source serving values from a live table.

    Only declared fields are returned unless the model allows or ignores
    extra fields, in which case the whole table is handed over.
    """

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        table: _abc.Mapping[str, _typing.Any],
    ) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, _typing.Any] = tree.thaw(table)

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        """
        Get value for a field from the table.

        Returns:
            Tuple of (value, key, is_complex).
        """
        key = field.alias or field_name
        value = self._data.get(key)
        return value, key, isinstance(value, (_abc.Mapping, list))

    def __call__(self) -> dict[str, _typing.Any]:
        extra = self.settings_cls.model_config.get("extra")
        if extra in ("allow", "ignore"):
            return dict(self._data)
        result: dict[str, _typing.Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field, field_name)
            if value is not None:
                result[key] = value
        return result


def build_settings(
    settings_cls: type[_SettingsT],
    table: _abc.Mapping[str, _typing.Any],
    **init_kwargs: _typing.Any,
) -> _SettingsT:
    """
    Instantiate settings_cls with the live table as its settings source.

    Args:
        settings_cls: A pydantic_settings.BaseSettings subclass.
        table: The live table to read from.
        **init_kwargs: Values taking precedence over the table.

    Returns:
        A validated instance (of a private subclass of settings_cls that
        only swaps the source list).

    Raises:
        TypeError: If settings_cls is not a BaseSettings subclass.
        pydantic.ValidationError: If the table does not fit the model.
    """
    if not (isinstance(settings_cls, type) and issubclass(settings_cls, _pydantic_settings.BaseSettings)):
        raise TypeError(f"{settings_cls!r} is not a pydantic_settings.BaseSettings subclass")

    class _LiveTableSettings(settings_cls):  # type: ignore[valid-type,misc]
        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[_pydantic_settings.BaseSettings],
            init_settings: _pydantic_settings.PydanticBaseSettingsSource,
            env_settings: _pydantic_settings.PydanticBaseSettingsSource,
            dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
            file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
        ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
            return (init_settings, LiveTableSettingsSource(settings_cls, table))

    _LiveTableSettings.__name__ = settings_cls.__name__
    _LiveTableSettings.__qualname__ = settings_cls.__qualname__
    return _typing.cast(_SettingsT, _LiveTableSettings(**init_kwargs))
