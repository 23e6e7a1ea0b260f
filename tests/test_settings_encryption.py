import os
import sys
import unittest
import keyring
import yaml
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository

class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1
    def __init__(self):
        self.store = {}
    def get_password(self, service, username):
        return self.store.get((service, username))
    def set_password(self, service, username, password):
        self.store[(service, username)] = password
    def delete_password(self, service, username):
        self.store.pop((service, username), None)

class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.keyring = DummyKeyring()
        keyring.set_keyring(self.keyring)
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.path = 'enc_settings.yaml'
        self.db_path = 'enc_settings.db'
        for path in (self.path, self.db_path):
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in (self.path, self.db_path):
            if os.path.exists(path):
                os.remove(path)
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'api_token': 'secret', 'weight_unit': 'lb'})
        self.assertTrue(os.path.exists(self.path))
        with open(self.path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
        self.assertNotEqual(raw['api_token'], 'secret')
        self.assertEqual(self.keyring.store[('coach_workout', 'api_token')], 'secret')
        data = cfg.load()
        self.assertEqual(data['api_token'], 'secret')
        self.assertEqual(data['weight_unit'], 'lb')

    def test_missing_secret_is_dropped(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'api_token': '', 'weight_unit': 'kg'})
        self.assertEqual(self.keyring.store, {})
        self.assertNotIn('api_token', cfg.load())

    def test_clearing_secret_removes_it_from_keyring(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'api_token': 'old'})
        cfg.save({'api_token': ''})
        self.assertEqual(self.keyring.store, {})
        self.assertEqual(cfg.load(), {})

    def test_repository_reads_token_from_keyring(self) -> None:
        YamlConfig(self.path).save({'api_token': 'abc123'})
        settings = SettingsRepository(self.db_path, self.path)
        self.assertEqual(settings.get_text('api_token', ''), 'abc123')
        self.assertEqual(settings.get_float('load_increment', 0.0), 2.5)

if __name__ == '__main__':
    unittest.main()
