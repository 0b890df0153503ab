import json
import os

import pytest

from bigasan_pos.exceptions import InvalidCredentials, ValidationError
from bigasan_pos.repositories import OwnerRepository
from bigasan_pos.services import AuthService


@pytest.fixture
def auth(store, tmp_path):
    return AuthService(OwnerRepository(str(tmp_path)), store)


def test_default_owner_is_created_hashed(auth, store, tmp_path):
    owner = auth.ensure_owner()
    assert owner.username == 'owner'
    with open(os.path.join(str(tmp_path), 'owner.json'), encoding='utf-8') as f:
        raw = json.load(f)
    assert raw['username'] == 'owner'
    assert '1234' not in raw['password_hash']
    assert store.owner == {'username': 'owner'}
    assert auth.check_credentials('owner', '1234')


def test_ensure_owner_keeps_existing(auth):
    auth.save_owner('joshua', 'secreto')
    assert auth.ensure_owner().username == 'joshua'
    assert not auth.check_credentials('owner', '1234')


@pytest.mark.parametrize('username, password, confirm', [
    ('', 'secreto', None),
    ('   ', 'secreto', None),
    ('joshua', '123', None),
    ('joshua', 'secreto', 'otro'),
])
def test_save_owner_validation(auth, username, password, confirm):
    auth.ensure_owner()
    with pytest.raises(ValidationError):
        auth.save_owner(username, password, confirm)
    assert auth.get_owner() == 'owner'


def test_authenticate(auth, store):
    auth.save_owner(' joshua ', 'secreto', 'secreto')
    assert auth.authenticate('joshua', 'secreto') == 'joshua'
    assert store.owner == {'username': 'joshua'}
    with pytest.raises(InvalidCredentials):
        auth.authenticate('joshua', 'SECRETO')
    with pytest.raises(InvalidCredentials):
        auth.authenticate(None, None)


def test_owner_never_reaches_the_cloud(data, fake_db):
    data.save_owner('tindera', 'secreto')
    data.seed_if_empty()
    data.sync.push_all()
    payloads = ' '.join(doc['data'] for _, doc in fake_db.writes)
    assert 'tindera' not in payloads
    assert 'password' not in payloads
    assert 'owner' not in data.export_snapshot()
