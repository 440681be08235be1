import os
import yaml
import keyring
from keyring.errors import PasswordDeleteError


class YamlConfig:
    """Settings file for repcoach.

    With ``ENCRYPT_SETTINGS=1`` the OpenRouter key never reaches the YAML
    file: it is kept in the system keyring and the file only records
    ``true`` in its place.
    """

    SECRET_KEYS = ("openrouter_api_key",)
    KEYRING_SERVICE = "repcoach"

    def __init__(self, path: str | None = None) -> None:
        self.path = path or os.environ.get("REPCOACH_SETTINGS", "settings.yaml")
        self.use_keyring = os.environ.get("ENCRYPT_SETTINGS") == "1"

    def _read_file(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping of settings")
        return data

    def _write_file(self, data: dict) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=True)
        os.replace(tmp_path, self.path)

    def _restore_secrets(self, data: dict) -> dict:
        for key in self.SECRET_KEYS:
            if key not in data:
                continue
            secret = keyring.get_password(self.KEYRING_SERVICE, key)
            if secret:
                data[key] = secret
            else:
                del data[key]
        return data

    def _stash_secrets(self, data: dict) -> dict:
        for key in self.SECRET_KEYS:
            if key not in data:
                continue
            value = data[key]
            if value is True:
                continue
            if value is None or value == "":
                self.clear_secret(key)
                del data[key]
                continue
            keyring.set_password(self.KEYRING_SERVICE, key, str(value))
            data[key] = True
        return data

    def clear_secret(self, key: str) -> None:
        try:
            keyring.delete_password(self.KEYRING_SERVICE, key)
        except PasswordDeleteError:
            pass

    def load(self) -> dict:
        data = self._read_file()
        if self.use_keyring:
            data = self._restore_secrets(data)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.use_keyring:
            out = self._stash_secrets(out)
        self._write_file(out)
