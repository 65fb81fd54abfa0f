import pytest
import requests

from personal_stats.config import AppConfig, GitHubConfig, StorageConfig, WakaTimeConfig
from personal_stats.providers.wakatime import WakaTimeClient
from personal_stats.store import DocumentStore
from personal_stats.sync import SyncContext
from personal_stats.utils.retry import RetryPolicy


class FakeDocument:
    def __init__(self, db, collection, doc_id):
        self.db = db
        self.key = (collection, doc_id)

    def set(self, data):
        if self.key in self.db.fail_on:
            raise self.db.fail_on[self.key]
        self.db.writes.append(self.key)
        self.db.docs[self.key] = dict(data)

    def get(self):
        return FakeSnapshot(self.db.docs.get(self.key))


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data)


class FakeCollection:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def document(self, doc_id):
        return FakeDocument(self.db, self.name, doc_id)


class FakeFirestore:
    """Just enough of firestore.Client for collection/document set and get."""

    def __init__(self):
        self.docs = {}
        self.writes = []
        self.fail_on = {}

    def collection(self, name):
        return FakeCollection(self, name)


@pytest.fixture
def wakatime_config():
    return WakaTimeConfig(username="test-user", access_token="dGVzdC1rZXk=")


@pytest.fixture
def github_config():
    return GitHubConfig(username="test-user", access_token="ghp_test")


@pytest.fixture
def app_config(wakatime_config, github_config):
    return AppConfig(
        wakatime=wakatime_config,
        github=github_config,
        storage=StorageConfig(images_bucket="test-bucket"),
    )


@pytest.fixture
def no_retry():
    return RetryPolicy(max_retries=0, delay=0, exceptions=(requests.RequestException,))


@pytest.fixture
def firestore_client():
    return FakeFirestore()


@pytest.fixture
def store(firestore_client):
    return DocumentStore(firestore_client)


@pytest.fixture
def context(app_config, store, no_retry):
    wakatime = WakaTimeClient(
        app_config.wakatime,
        summaries_retry=no_retry,
        stats_retry=no_retry,
    )
    return SyncContext(config=app_config, store=store, wakatime=wakatime)
