"""
The Config aggregator.

Config collects configuration from five ordered sources and serves the
merged result:

    defaults < files < remote < env < cli

- defaults: register_defaults()
- files:    read_in_config(), from_json()/from_yaml()/from_toml()/from_file(),
            and file watchers reloading those files
- remote:   register_remote_source() fetch functions, polled on demand
            or on an interval
- env:      environment variables, through an EnvBinding
- cli:      runtime overrides passed to load() or set()

Every write goes through alias resolution and dotted-key expansion, is
stored per source, and triggers a rebuild of the live table. Registered
on_change() callbacks run after each rebuild that actually changed the
table.

Example:
    >>> cfg = Config(environ={"FIGI_DATABASE_PORT": "5433"})
    >>> cfg.register_defaults({"database.host": "localhost", "database": {"port": 5432}})
    >>> cfg.register_alias("db_host", "database.host")
    >>> cfg.load({"db_host": "db.internal"}, read_files=False, read_remote=False)
    >>> cfg.get_string("database.host"), cfg.get_int("database.port")
    ('db.internal', 5433)

A Config owns background threads once remote polling or file watching
starts; call close() (or use it as a context manager) when done, or
reset() to tear everything down and start over empty.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import os as _os
import pathlib as _pathlib
import threading as _threading
import typing as _typing

import figi.accessors as accessors
import figi.aliases as aliases
import figi.env as env
import figi.errors as errors
import figi.files as files
import figi.remote as remote
import figi.settings as settings
import figi.store as store
import figi.tree as tree
import figi.watch as watch

_logger = _logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "config"

# Entry names for the single-entry buckets
_DEFAULTS_ENTRY = "defaults"
_ENV_ENTRY = "environment"
_CLI_ENTRY = "overrides"

_SettingsT = _typing.TypeVar("_SettingsT")
_T = _typing.TypeVar("_T")


class Config:
    """
    Layered configuration aggregator.

    Args:
        environ: Environment snapshot for the env source. None reads
            os.environ at load time.
        notifier_factory: Builds file-change notifiers for watchers.
            Defaults to watchdog; pass None to only reload on
            simulate_file_change().
        parsers: Parser registry for config files. Defaults to
            JSON/YAML/TOML.
    """

    def __init__(
        self,
        *,
        environ: _abc.Mapping[str, str] | None = None,
        notifier_factory: watch.NotifierFactory | None = watch.WatchdogNotifier,
        parsers: files.ParserRegistry | None = None,
    ) -> None:
        self._environ = environ
        self._notifier_factory = notifier_factory
        self._parsers = parsers or files.ParserRegistry.with_defaults()
        self._init_state()

    def _init_state(self) -> None:
        self._store = store.SourceStore()
        self._aliases = aliases.AliasResolver()
        self._env = env.EnvBinding()
        self._remote_lock = _threading.RLock()
        self._remotes: dict[str, remote.RemoteSource] = {}
        self._watchers = watch.WatcherRegistry(self._notifier_factory)
        self._config_name = DEFAULT_CONFIG_NAME
        self._config_paths: list[_pathlib.Path] = []
        self._config_file: _pathlib.Path | None = None
        # Files found by discovery (as opposed to from_json() & co)
        self._discovered: list[_pathlib.Path] = []

    def __repr__(self) -> str:
        return (
            f"Config(keys={len(self._store.table)}, remotes={len(self._remotes)}, "
            f"watchers={len(self._watchers)})"
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Stop every remote poller and file watcher. Loaded values stay readable."""
        with self._remote_lock:
            sources = list(self._remotes.values())
        self._stop_sources(sources)
        self._watchers.stop_all()

    def reset(self) -> None:
        """Stop all background activity and return to the freshly constructed state."""
        self.close()
        self._store.reset()
        self._init_state()
        _logger.debug("Config reset")

    def __enter__(self) -> Config:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Keys and aliases
    # =========================================================================

    def register_alias(self, alias_key: str, canonical_key: str) -> None:
        """
        Make alias_key an alias of canonical_key.

        Applies to every later write and to all reads.
        """
        self._aliases.register(alias_key, canonical_key)

    @property
    def alias_resolver(self) -> aliases.AliasResolver:
        return self._aliases

    def _normalize(self, raw: _abc.Mapping[str, _typing.Any] | None) -> dict[str, _typing.Any]:
        if raw is None:
            return {}
        if not isinstance(raw, _abc.Mapping):
            raise TypeError(f"Configuration must be a mapping, got {type(raw).__name__}")
        return tree.normalize(raw, self._aliases.resolve)

    def _path(self, key: str) -> tree.Path:
        return tree.resolve_path(tree.split_key(str(key)), self._aliases.resolve)

    # =========================================================================
    # Defaults and runtime overrides
    # =========================================================================

    def register_defaults(self, defaults: _abc.Mapping[str, _typing.Any]) -> None:
        """Merge defaults into the defaults source. Later registrations win."""
        normalized = self._normalize(defaults)
        with self._store.lock:
            existing = self._store.get_entry(store.SourceTag.DEFAULTS, _DEFAULTS_ENTRY) or {}
            self._store.set_entry(
                store.SourceTag.DEFAULTS,
                _DEFAULTS_ENTRY,
                tree.deep_merge(existing, normalized),
            )
            self._store.rebuild()

    def set(self, key: str, value: _typing.Any) -> None:
        """Set a single runtime override (cli source)."""
        fragment = self._normalize({str(key): value})
        with self._store.lock:
            existing = self._store.get_entry(store.SourceTag.CLI, _CLI_ENTRY) or {}
            self._store.set_entry(
                store.SourceTag.CLI, _CLI_ENTRY, tree.deep_merge(existing, fragment)
            )
            self._store.rebuild()

    # =========================================================================
    # Environment
    # =========================================================================

    @property
    def env_binding(self) -> env.EnvBinding:
        return self._env

    def configure_env(
        self,
        prefix: str | None = env.DEFAULT_PREFIX,
        separator: str = env.DEFAULT_SEPARATOR,
        formatter: env.Formatter | None = None,
    ) -> env.EnvBinding:
        """
        Replace the env binder. Explicit bindings are dropped with it.

        Returns:
            The new binder, for further set_formatter()/bind() calls.
        """
        self._env = env.EnvBinding(prefix=prefix, separator=separator, formatter=formatter)
        return self._env

    def bind_env(
        self,
        env_var: str,
        key: str,
        transformer: env.Transformer | None = None,
    ) -> None:
        """Bind one environment variable to key, optionally transforming its value."""
        self._env.bind(env_var, key, transformer)

    def _environ_snapshot(self) -> dict[str, str]:
        source = self._environ if self._environ is not None else _os.environ
        return dict(source)

    def read_env(self) -> dict[str, _typing.Any]:
        """Re-read the environment into the env source and rebuild."""
        data = self._normalize(self._env.read(self._environ_snapshot()))
        with self._store.lock:
            self._store.set_entry(store.SourceTag.ENV, _ENV_ENTRY, data)
            self._store.rebuild()
        return data

    # =========================================================================
    # Files
    # =========================================================================

    def set_config_name(self, name: str) -> None:
        """Set the base name (without extension) discovery looks for."""
        if not name:
            raise ValueError("Config name must be non-empty")
        self._config_name = str(name)

    def add_config_path(self, path: _pathlib.Path | str) -> None:
        """Add a search directory. Directories are searched in the order added."""
        resolved = _pathlib.Path(path).expanduser().resolve()
        if resolved not in self._config_paths:
            self._config_paths.append(resolved)

    def set_config_file(self, path: _pathlib.Path | str | None) -> None:
        """
        Use one explicit file instead of discovery (None restores discovery).

        Raises:
            ConfigFormatError: If no parser handles the file's extension.
        """
        if path is None:
            self._config_file = None
            return
        resolved = _pathlib.Path(path).expanduser().resolve()
        self._parsers.for_path(resolved)
        self._config_file = resolved

    @property
    def config_name(self) -> str:
        return self._config_name

    @property
    def config_paths(self) -> list[_pathlib.Path]:
        return list(self._config_paths)

    @property
    def parsers(self) -> files.ParserRegistry:
        return self._parsers

    def discover_files(self) -> list[_pathlib.Path]:
        """Config files the next read would load, in merge order."""
        if self._config_file is not None:
            return [self._config_file]
        return files.discover(self._config_paths, self._config_name, self._parsers.extensions)

    def _read_discovered(self, *, required: bool) -> list[tuple[_pathlib.Path, dict[str, _typing.Any]]]:
        paths = self.discover_files()
        if not paths and required:
            searched = ", ".join(str(p) for p in self._config_paths) or "(no search paths)"
            raise errors.ConfigFileNotFoundError(
                self._config_name,
                f"no {self._config_name}{{{','.join(self._parsers.extensions)}}} in {searched}",
            )
        return [
            (path, self._normalize(files.load_file(path, self._parsers)))
            for path in paths
        ]

    def _replace_discovered(self, loaded: list[tuple[_pathlib.Path, dict[str, _typing.Any]]]) -> None:
        # Caller holds the store lock. Entries merge in insertion order, so
        # every discovered file is dropped and re-stored in search order
        new_paths = [path for path, _ in loaded]
        for stale in self._discovered:
            self._store.clear_bucket(store.SourceTag.FILES, str(stale))
        for path, data in loaded:
            self._store.set_entry(store.SourceTag.FILES, str(path), data)
        self._discovered = new_paths

    def read_in_config(self, *, watch_files: bool = False) -> list[_pathlib.Path]:
        """
        Discover and load config files into the files source.

        All files are parsed before anything is stored, so a failure
        leaves the current configuration untouched.

        Returns:
            The loaded paths, in merge order.

        Raises:
            ConfigFileNotFoundError: Nothing found, or a file is unreadable.
            ConfigParseError: A file failed to parse.
        """
        loaded = self._read_discovered(required=True)
        with self._store.lock:
            self._replace_discovered(loaded)
            self._store.rebuild()
        if watch_files:
            for path, _ in loaded:
                self.watch_file(path)
        return [path for path, _ in loaded]

    def _load_file_entry(
        self,
        path: _pathlib.Path | str,
        parser: files.Parser | None = None,
    ) -> tree.FrozenMapping:
        resolved = _pathlib.Path(path).expanduser().resolve()
        data = self._normalize(files.load_file(resolved, self._parsers, parser=parser))
        with self._store.lock:
            self._store.set_entry(store.SourceTag.FILES, str(resolved), data)
            return self._store.rebuild().table

    def from_file(self, path: _pathlib.Path | str) -> tree.FrozenMapping:
        """Load one file (format chosen by extension) into the files source."""
        return self._load_file_entry(path)

    def from_json(self, path: _pathlib.Path | str) -> tree.FrozenMapping:
        return self._load_file_entry(path, self._parser_for(".json"))

    def from_yaml(self, path: _pathlib.Path | str) -> tree.FrozenMapping:
        return self._load_file_entry(path, self._parser_for(".yaml"))

    def from_toml(self, path: _pathlib.Path | str) -> tree.FrozenMapping:
        return self._load_file_entry(path, self._parser_for(".toml"))

    def _parser_for(self, extension: str) -> files.Parser:
        parser = self._parsers.get(extension)
        if parser is None:
            raise errors.ConfigFormatError(f"*{extension}", self._parsers.extensions)
        return parser

    def _reload_file(self, path: _pathlib.Path) -> None:
        self._load_file_entry(path)

    # =========================================================================
    # File watching
    # =========================================================================

    def watch_file(self, path: _pathlib.Path | str) -> watch.FileWatcher:
        """Reload path into the files source whenever it changes. Idempotent per path."""
        return self._watchers.watch(path, self._reload_file)

    def unwatch_file(self, path: _pathlib.Path | str) -> bool:
        return self._watchers.unwatch(path)

    @property
    def watched_files(self) -> list[_pathlib.Path]:
        return self._watchers.paths()

    def simulate_file_change(self, path: _pathlib.Path | str) -> bool:
        """
        Run the reload logic for path as if a change had been detected.

        Failures are logged, not raised, exactly as for a real change.

        Returns:
            True if the reload succeeded.
        """
        return self._watchers.simulate_change(path, self._reload_file)

    # =========================================================================
    # Remote sources
    # =========================================================================

    def register_remote_source(
        self,
        name: str,
        fetch: remote.FetchFunction,
        *,
        interval: float | None = None,
    ) -> remote.RemoteSource:
        """
        Register a remote source. A source already registered under name
        is stopped and replaced.

        Args:
            name: Source name.
            fetch: Zero-argument callable returning a mapping.
            interval: Seconds between background polls once started.
        """
        source = remote.RemoteSource(name, fetch, self._store_remote, interval=interval)
        with self._remote_lock:
            previous = self._remotes.get(source.name)
            self._remotes[source.name] = source
        if previous is not None:
            self._stop_sources([previous])
        return source

    def remove_remote_source(self, name: str) -> bool:
        """Stop and unregister a source and drop its values."""
        with self._remote_lock:
            source = self._remotes.pop(str(name), None)
        if source is None:
            return False
        self._stop_sources([source])
        with self._store.lock:
            self._store.clear_bucket(store.SourceTag.REMOTE, source.name)
            self._store.rebuild()
        return True

    @property
    def remote_sources(self) -> dict[str, remote.RemoteSource]:
        with self._remote_lock:
            return dict(self._remotes)

    def _remote(self, name: str) -> remote.RemoteSource:
        with self._remote_lock:
            source = self._remotes.get(str(name))
        if source is None:
            raise errors.ConfigRemoteError(str(name), "no such remote source registered")
        return source

    def _stop_sources(self, sources: _abc.Iterable[remote.RemoteSource]) -> None:
        # A callback holds the store lock; a poll loop may be blocked on it
        wait = not self._store.in_callback
        for source in sources:
            source.stop(wait=wait)

    def _store_remote(self, name: str, data: _abc.Mapping[str, _typing.Any]) -> None:
        normalized = self._normalize(data)
        with self._store.lock:
            if remote.delivery_cancelled():
                _logger.debug("Dropped fetch from stopped remote source %r", name)
                return
            self._store.set_entry(store.SourceTag.REMOTE, name, normalized)
            self._store.rebuild()

    def refresh_remote_source(self, name: str) -> dict[str, _typing.Any]:
        """
        Poll one source now.

        Raises:
            ConfigRemoteError: Unknown source or failed fetch.
        """
        return self._remote(name).poll()

    def start_remote_polling(self, name: str | None = None) -> None:
        """Start one source (or all). See RemoteSource.start()."""
        sources = [self._remote(name)] if name is not None else list(self.remote_sources.values())
        wait = not self._store.in_callback
        for source in sources:
            source.start(wait=wait)

    def stop_remote_polling(self, name: str | None = None) -> None:
        sources = [self._remote(name)] if name is not None else list(self.remote_sources.values())
        self._stop_sources(sources)

    # =========================================================================
    # Combined load
    # =========================================================================

    def load(
        self,
        overrides: _abc.Mapping[str, _typing.Any] | None = None,
        *,
        read_files: bool = True,
        read_env: bool = True,
        read_remote: bool = True,
        watch_files: bool = False,
        configure: _typing.Callable[[dict[str, _typing.Any]], _typing.Any] | None = None,
    ) -> None:
        """
        Refresh every source in one step.

        The cli source is replaced by overrides (plus whatever configure
        writes into the dict it is given). Each enabled source is
        re-read; each disabled one is cleared. Defaults are kept. The live
        table is rebuilt once, so callbacks fire at most once.

        Args:
            overrides: Runtime overrides (highest priority).
            read_files: Load discovered config files. Missing files are
                not an error here; unreadable or invalid ones are.
            read_env: Read environment variables.
            read_remote: Fetch every registered remote source once.
                When False, background pollers are stopped too.
            watch_files: Watch every loaded file for changes.
            configure: Called with a mutable dict; its contents are
                added to the overrides.

        Raises:
            ConfigFileNotFoundError, ConfigParseError: From file loading.
            ConfigRemoteError: From a remote fetch.
        """
        cli = self._normalize(overrides)
        if configure is not None:
            overlay: dict[str, _typing.Any] = {}
            configure(overlay)
            cli = tree.deep_merge(cli, self._normalize(overlay))

        loaded = self._read_discovered(required=False) if read_files else []
        env_data = self._normalize(self._env.read(self._environ_snapshot())) if read_env else None

        fetched: dict[str, dict[str, _typing.Any]] = {}
        if read_remote:
            for name, source in self.remote_sources.items():
                fetched[name] = self._normalize(source.fetch())
        else:
            self.stop_remote_polling()

        if not read_files:
            for path in self._discovered:
                self._watchers.unwatch(path)

        with self._store.lock:
            self._store.set_entry(store.SourceTag.CLI, _CLI_ENTRY, cli)
            if read_files:
                self._replace_discovered(loaded)
            else:
                self._store.clear_bucket(store.SourceTag.FILES)
                self._discovered = []
            if env_data is not None:
                self._store.set_entry(store.SourceTag.ENV, _ENV_ENTRY, env_data)
            else:
                self._store.clear_bucket(store.SourceTag.ENV)
            self._store.clear_bucket(store.SourceTag.REMOTE)
            for name, data in fetched.items():
                self._store.set_entry(store.SourceTag.REMOTE, name, data)
            self._store.rebuild()

        if watch_files:
            for path, _ in loaded:
                self.watch_file(path)

    # =========================================================================
    # Change callbacks
    # =========================================================================

    def on_change(self, callback: store.ChangeCallback) -> store.ChangeCallback:
        """
        Call callback with the new live table after every rebuild that
        changed it. Usable as a decorator.
        """
        return self._store.on_change(callback)

    def remove_callback(self, callback: store.ChangeCallback) -> bool:
        return self._store.remove_callback(callback)

    # =========================================================================
    # Reading
    # =========================================================================

    @property
    def table(self) -> tree.FrozenMapping:
        """The live table (read-only view)."""
        return self._store.table

    @property
    def source_store(self) -> store.SourceStore:
        return self._store

    def to_dict(self) -> dict[str, _typing.Any]:
        """Independent, mutable deep copy of the live table."""
        return self._store.table.to_dict()

    def get(self, key: str, default: _typing.Any = None) -> _typing.Any:
        """
        Value at a dotted key, or default if any segment is absent.

        Mappings and lists come back as read-only views.
        """
        value = tree.lookup(self._store.table, self._path(key))
        return default if value is tree.MISSING else value

    def __getitem__(self, key: str) -> _typing.Any:
        value = tree.lookup(self._store.table, self._path(key))
        if value is tree.MISSING:
            raise KeyError(key)
        return value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        try:
            path = self._path(key)
        except ValueError:
            return False
        return tree.lookup(self._store.table, path) is not tree.MISSING

    def is_set(self, key: str) -> bool:
        return key in self

    def all_keys(self) -> list[str]:
        """Dotted keys of every leaf in the live table, sorted."""
        keys: list[str] = []

        def walk(node: _abc.Mapping[str, _typing.Any], prefix: tree.Path) -> None:
            for name, value in node.items():
                path = prefix + (name,)
                if isinstance(value, _abc.Mapping) and value:
                    walk(value, path)
                else:
                    keys.append(tree.join_key(path))

        walk(self._store.table, ())
        return sorted(keys)

    def _typed(
        self,
        key: str,
        default: _typing.Any,
        convert: _typing.Callable[[str, _typing.Any], _T],
    ) -> _T | _typing.Any:
        value = self.get(key)
        if value is None:
            return default
        return convert(str(key), value)

    def get_string(self, key: str, default: str | None = None) -> str | None:
        return self._typed(key, default, accessors.to_string)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        return self._typed(key, default, accessors.to_int)

    def get_float(self, key: str, default: float | None = None) -> float | None:
        return self._typed(key, default, accessors.to_float)

    def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        """
        Boolean at key: a stored bool, or "true"/"false" in any case.

        Raises:
            ConfigTypeError: For any other stored value.
        """
        return self._typed(key, default, accessors.to_bool)

    def get_array(
        self,
        key: str,
        default: list[_typing.Any] | None = None,
    ) -> list[_typing.Any] | None:
        return self._typed(key, default, accessors.to_list)

    def get_hash(
        self,
        key: str,
        default: dict[str, _typing.Any] | None = None,
    ) -> dict[str, _typing.Any] | None:
        return self._typed(key, default, accessors.to_dict)

    def to_settings(self, settings_cls: type[_SettingsT], **init_kwargs: _typing.Any) -> _SettingsT:
        """
        Validate the live table into a pydantic-settings model.

        Constructor kwargs take precedence over the live table.
        """
        return settings.build_settings(settings_cls, self._store.table, **init_kwargs)
