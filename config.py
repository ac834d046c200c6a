"""Simple JSON-based configuration module."""

import os
import json
import atexit
import platform
from collections.abc import MutableMapping

from logging_config import get_logger, setup_logging

_logger = get_logger('config')

# Cache for portable mode detection
_portable_path = None
_portable_checked = False

APP_CONFIG_DIRNAME = "fusionfeed"

DEFAULTS = {
	# Log at DEBUG level to the log file
	"debug": False,
	# Items requested per page from each backend
	"fetch_limit": 40,
	# Seconds before a cached link preview expires
	"link_preview_ttl": 24 * 60 * 60,
	# How many chat event keys are remembered for duplicate suppression
	"event_dedupe_window": 5000,
	"preserve_position": True,
}


def is_portable_mode():
	"""Check if running in portable mode (userdata folder exists in current directory)."""
	global _portable_path, _portable_checked
	if _portable_checked:
		return _portable_path is not None

	_portable_checked = True
	# Only check for portable mode on Windows and Linux, not macOS
	if platform.system() == "Darwin":
		return False

	userdata_path = os.path.join(os.getcwd(), "userdata")
	if os.path.isdir(userdata_path):
		_portable_path = userdata_path
		return True

	return False


def get_portable_path():
	"""Get the portable userdata path, or None if not in portable mode."""
	is_portable_mode()
	return _portable_path


def get_config_home():
	"""Get the user config directory based on platform.

	On Windows/Linux, if a 'userdata' folder exists in the current directory,
	that folder will be used instead (portable mode).
	"""
	portable = get_portable_path()
	if portable:
		return portable

	if platform.system() == "Windows":
		return os.environ.get("APPDATA", os.path.expanduser("~"))
	elif platform.system() == "Darwin":
		return os.path.expanduser("~/Library/Application Support")
	else:
		return os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))


def get_app_dir():
	"""Directory holding the config file, log file and state database."""
	if is_portable_mode():
		return get_config_home()
	return os.path.join(get_config_home(), APP_CONFIG_DIRNAME)


class Config(MutableMapping):
	"""A simple JSON-based configuration class with attribute access and autosave."""

	def __init__(self, path, autosave=False, save_on_exit=True, defaults=None, _parent=None, _data=None):
		self._path = path
		self._autosave = autosave
		self._parent = _parent
		self._closed = False
		self._save_on_exit = save_on_exit and _parent is None

		if _data is None:
			self._data = dict(defaults or {})
			if _parent is None:
				self._load()
				if self._save_on_exit:
					atexit.register(self.save)
		else:
			self._data = _data

	@property
	def config_file(self):
		"""Get the path to the config file."""
		return os.path.join(self._path, "config.json")

	def _load(self):
		"""Load configuration from file, layering it over the defaults."""
		try:
			with open(self.config_file, 'r') as f:
				self._data.update(json.load(f))
		except FileNotFoundError:
			pass
		except (OSError, ValueError) as e:
			_logger.error(f"Error loading config {self.config_file}: {e}")

	def save(self):
		"""Save configuration to file."""
		if self._parent:
			return self._parent.save()

		config_file = self.config_file
		os.makedirs(os.path.dirname(config_file), exist_ok=True)

		try:
			with open(config_file, 'w') as f:
				json.dump(self._data, f, indent=1, default=self._serialize)
		except OSError as e:
			_logger.error(f"Error saving config {config_file}: {e}")

	def _serialize(self, obj):
		"""Custom serializer for Config objects."""
		if hasattr(obj, '_data'):
			return obj._data
		return str(obj)

	def get(self, key, default=None):
		"""Get a value with a default."""
		return self._data.get(key, default)

	def __getitem__(self, key):
		return self._data[key]

	def __setitem__(self, key, value):
		if isinstance(value, dict):
			value = Config(self._path, autosave=self._autosave, _parent=self, _data=value)
		self._data[key] = value
		if self._autosave:
			self.save()

	def __delitem__(self, key):
		del self._data[key]
		if self._autosave:
			self.save()

	def __iter__(self):
		return iter(self._data)

	def __len__(self):
		return len(self._data)

	def __repr__(self):
		return repr(self._data)

	def __getattr__(self, name):
		if name.startswith('_'):
			raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
		try:
			return self[name]
		except KeyError:
			raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

	def __setattr__(self, name, value):
		if name.startswith('_'):
			super().__setattr__(name, value)
		else:
			self[name] = value

	def __delattr__(self, name):
		if name.startswith('_'):
			super().__delattr__(name)
		else:
			del self[name]

	def close(self):
		"""Save and close the config."""
		if not self._closed:
			self._closed = True
			self.save()
			if self._save_on_exit:
				atexit.unregister(self.save)
			return True
		return False


def load_prefs(path=None, save_on_exit=True):
	"""Load the package preferences, filling in defaults for missing keys."""
	return Config(path or get_app_dir(), save_on_exit=save_on_exit, defaults=DEFAULTS)


def startup(path=None, save_on_exit=True):
	"""Load preferences and start logging at the level they ask for."""
	path = path or get_app_dir()
	prefs = load_prefs(path, save_on_exit=save_on_exit)
	setup_logging(path, debug=bool(prefs.get('debug')))
	return prefs
