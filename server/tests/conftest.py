import asyncio
import os
import random
import sys

import pytest

# Ensure the server root (containing config/, models/, services/...) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
SERVER_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if SERVER_ROOT not in sys.path:
    sys.path.insert(0, SERVER_ROOT)

from models.entities import CodeSnippet, HighScore
from services.match_controller import MatchController
from services.score_store import HighScoreStore


SNIPPETS = [
    CodeSnippet(code="abc", language="text", repo="test/a", fileName="a.txt", gitUrl="snip-a"),
    CodeSnippet(code="def f():\n    return 1", language="python", repo="test/b", fileName="b.py", gitUrl="snip-b"),
    CodeSnippet(code="xyz", language="text", repo="test/c", fileName="c.txt", gitUrl="snip-c"),
]


class FakeSnippetSource:
    """Hands out snippets in order, skipping excluded ids, and records requests."""

    def __init__(self, snippets=None):
        self.snippets = list(snippets or SNIPPETS)
        self.requests = []
        self.gate = None  # set to an asyncio.Event to hold fetches open

    async def fetch_next(self, exclude=()):
        exclude = list(exclude)
        self.requests.append(exclude)
        if self.gate is not None:
            await self.gate.wait()
        for snippet in self.snippets:
            if snippet.gitUrl not in exclude:
                return snippet
        return self.snippets[0]


class FailingSnippetSource:
    def __init__(self):
        self.requests = []

    async def fetch_next(self, exclude=()):
        self.requests.append(list(exclude))
        raise RuntimeError("offline")


class MemoryScoreStore:
    def __init__(self, high_score=None):
        self.high_score = high_score
        self.saved = []

    def load(self):
        return self.high_score

    def save_if_better(self, stats):
        if self.high_score is not None and stats.wpm <= self.high_score.wpm:
            return self.high_score
        self.high_score = HighScore(wpm=stats.wpm, accuracy=stats.accuracy)
        self.saved.append(self.high_score)
        return self.high_score


class FixedRandom(random.Random):
    """random() always returns the same value; other draws stay seeded."""

    def __init__(self, value=0.99, seed=7):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def source():
    return FakeSnippetSource()


@pytest.fixture()
def store():
    return MemoryScoreStore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_match(source, store, clock):
    """Build a controller with manual ticks and an instant strike cooldown."""

    def factory(**overrides):
        kwargs = dict(
            snippet_source=source,
            score_store=store,
            rng=FixedRandom(),
            clock=clock,
            tick_interval=None,
            strike_cooldown=0,
        )
        kwargs.update(overrides)
        return MatchController(**kwargs)

    return factory


@pytest.fixture()
def file_store(tmp_path):
    return HighScoreStore(tmp_path / "high_score.json")
