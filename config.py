import os
import yaml
import keyring

APP_VERSION = "0.3.0"


class YamlConfig:
    """Settings file in YAML.

    With ``ENCRYPT_SETTINGS=1`` the values of :attr:`SENSITIVE_KEYS` live in
    the system keyring and the file only records that a secret is set.
    """

    SENSITIVE_KEYS = {"api_token"}
    SERVICE = "coach_workout"

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if self.encrypt:
            self._restore_secrets(data)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            self._stash_secrets(out)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)

    def _restore_secrets(self, data: dict) -> None:
        for key in self.SENSITIVE_KEYS & data.keys():
            secret = keyring.get_password(self.SERVICE, key)
            if secret is None:
                del data[key]
            else:
                data[key] = secret

    def _stash_secrets(self, out: dict) -> None:
        for key in self.SENSITIVE_KEYS & out.keys():
            value = out[key]
            if value:
                keyring.set_password(self.SERVICE, key, str(value))
                out[key] = True
                continue
            # an empty value clears the stored secret
            if keyring.get_password(self.SERVICE, key) is not None:
                keyring.delete_password(self.SERVICE, key)
            del out[key]
