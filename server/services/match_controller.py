# server/services/match_controller.py
"""Core match state machine: world simulation, typing events and snippet flow."""

import asyncio
import logging
import math
import random
import time
import uuid
from dataclasses import asdict
from typing import Awaitable, Callable, Dict, List, Optional

from models.entities import (
    CodeSnippet,
    GameStats,
    Guard,
    LogEntry,
    MatchState,
    Player,
    SafeZone,
)
from config.settings import *
from services.combat import (
    advance_guard,
    is_captured,
    is_exposed,
    rolls_attrition,
    shrink_zone,
    step_bot,
)
from services.text_matcher import MatchResult, TextMatcher
from utils.helpers import clamp_health, random_arena_position, random_edge_position

logger = logging.getLogger(__name__)


class MatchController:
    """Owns the canonical world state of a single local match.

    The controller is driven from two directions: ``tick()`` advances the
    simulation on a fixed interval while ``handle_*`` methods feed keystrokes
    through the ``TextMatcher``. Both run on the same event loop, so state is
    never touched concurrently.

    Side effects meant for the client (sounds, terminal lines, spectator
    chat, elimination markers) are queued and collected with
    ``drain_events()``.
    """

    def __init__(
        self,
        snippet_source,
        score_store,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: Optional[float] = TICK_INTERVAL,
        strike_cooldown: float = STRIKE_COOLDOWN,
        frame_listener: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.snippet_source = snippet_source
        self.score_store = score_store
        self.rng = rng or random.Random()
        self.clock = clock
        self.tick_interval = tick_interval
        self.strike_cooldown = strike_cooldown
        self.frame_listener = frame_listener

        self.local_player_id = f"player-{uuid.uuid4().hex[:9]}"
        self.matcher = TextMatcher()
        self.high_score = score_store.load()

        # Bumped on every restart; async work tagged with an older value is stale
        self.generation = 0

        self._tick_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._cooldown_task: Optional[asyncio.Task] = None
        self._events: List[dict] = []

        self._reset_world()

    def _reset_world(self):
        """Put every piece of match state back to its lobby value."""
        self.state = MatchState.LOBBY
        self.players: Dict[str, Player] = {}
        self.guards: Dict[str, Guard] = {}
        self.safe_zone = SafeZone(x=SAFE_ZONE_X, y=SAFE_ZONE_Y, radius=SAFE_ZONE_RADIUS)
        self.snippet: Optional[CodeSnippet] = None
        self.used_snippet_ids: List[str] = []
        self.loading_snippet = False
        self.stats: Optional[GameStats] = None
        self.wpm = 0
        self.accuracy = 100
        self.logs: List[LogEntry] = []
        self.spectator_chat: List[str] = []
        self.start_time: Optional[float] = None
        self.next_guard_id = 0

        # Progress carried over from snippets that were already swapped out
        self._done_correct = 0
        self._done_chars = 0
        self._done_errors = 0

        self.matcher.reset()

    # Lifecycle
    async def start_lobby(self):
        """Prepare a fresh match and prefetch its first snippet.

        Also used to restart after a game over: running timers are stopped and
        any fetch still in flight for the old match is ignored.
        """
        self._cancel_tasks()
        self.generation += 1
        self._reset_world()
        self._events.clear()
        self._log("Initializing virtual shell environment...")
        self._spawn_roster()
        logger.info(f"Lobby ready for match {self.generation}")

        await self._load_snippet([], self.generation)

    def shutdown(self):
        """Stop every background task owned by the controller."""
        self._cancel_tasks()

    def _cancel_tasks(self):
        for task in (self._tick_task, self._fetch_task, self._cooldown_task):
            if task is not None and not task.done():
                task.cancel()
        self._tick_task = None
        self._fetch_task = None
        self._cooldown_task = None

    def _spawn(self, coro) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(coro)

    def _spawn_roster(self):
        self.players[self.local_player_id] = Player(
            id=self.local_player_id,
            name=LOCAL_PLAYER_NAME,
            x=SAFE_ZONE_X,
            y=SAFE_ZONE_Y,
        )
        for i in range(BOT_COUNT):
            x, y = random_arena_position(self.rng)
            bot_id = f"bot-{i}"
            self.players[bot_id] = Player(
                id=bot_id,
                name=f"{BOT_NAMES[i % len(BOT_NAMES)]}_{self.rng.randrange(999)}",
                x=x,
                y=y,
                isBot=True,
            )

    def _begin_match(self):
        self.state = MatchState.PLAYING
        self.start_time = self.clock()
        self._log("Battle Royale Protocol Engaged.", "sys")
        logger.info(f"Match {self.generation} started")
        if self.tick_interval is not None:
            self._tick_task = self._spawn(self._tick_loop(self.generation))

    async def _tick_loop(self, generation: int):
        while self.generation == generation and self.state is MatchState.PLAYING:
            await asyncio.sleep(self.tick_interval)
            if self.generation != generation:
                break
            self.tick()
            if self.frame_listener is not None:
                await self.frame_listener()

    # Accessors
    @property
    def local_player(self) -> Optional[Player]:
        return self.players.get(self.local_player_id)

    def alive_bots_count(self) -> int:
        return sum(1 for p in self.players.values() if p.isAlive and p.isBot)

    def alive_count(self) -> int:
        return sum(1 for p in self.players.values() if p.isAlive)

    # Events
    def _emit(self, event: dict):
        self._events.append(event)

    def _sound(self, name: str):
        self._emit({"type": "sound", "name": name})

    def _log(self, msg: str, log_type: str = "info"):
        entry = LogEntry(msg=msg, type=log_type)
        self.logs = (self.logs + [entry])[-LOG_HISTORY:]
        self._emit({"type": "log", "entry": asdict(entry)})

    def _chat(self, line: str):
        self.spectator_chat = (self.spectator_chat + [line])[-SPECTATOR_HISTORY:]
        self._emit({"type": "chat", "line": line})

    def drain_events(self) -> List[dict]:
        """Return and forget the side effects queued since the last call."""
        events, self._events = self._events, []
        return events

    # Typing
    def handle_input(self, value: str) -> Optional[MatchResult]:
        """Apply a whole-buffer update from the client's text area."""
        return self._apply_keystroke(lambda: self.matcher.set_input(value))

    def handle_tab(self) -> Optional[MatchResult]:
        return self._apply_keystroke(self.matcher.press_tab)

    def handle_backspace(self) -> Optional[MatchResult]:
        return self._apply_keystroke(self.matcher.backspace)

    def _apply_keystroke(self, action) -> Optional[MatchResult]:
        if self.state is MatchState.GAMEOVER or self.snippet is None:
            return None
        result = action()
        if result is None:
            return None

        if self.state is MatchState.LOBBY:
            self._begin_match()

        if result.new_error:
            self._sound("error")
        elif result.advanced:
            self._sound("type")

        self._update_speed(result)

        if result.threshold:
            self._handle_strike()
        if result.completed:
            self._handle_completion()
        return result

    def _update_speed(self, result: MatchResult):
        """Recompute live wpm and accuracy over the whole match so far."""
        correct = self._done_correct + result.correct
        evaluated = self._done_chars + len(self.matcher.buffer)
        errors = self._done_errors + result.errors

        elapsed_minutes = (self.clock() - self.start_time) / 60 if self.start_time else 0
        self.wpm = round(correct / CHARS_PER_WORD / elapsed_minutes) if elapsed_minutes > 0 else 0
        self.accuracy = round((evaluated - errors) / evaluated * 100) if evaluated > 0 else 100

        player = self.local_player
        if player is not None:
            player.wpm = self.wpm
            player.accuracy = self.accuracy

    def _handle_strike(self):
        self._log("STRIKE DETECTED. Guard Inbound.", "err")
        self._sound("alert")

        player = self.local_player
        x, y = random_edge_position(self.rng)
        guard_id = f"guard-{self.next_guard_id}"
        self.next_guard_id += 1
        self.guards[guard_id] = Guard(
            id=guard_id, x=x, y=y, targetId=self.local_player_id, speed=GUARD_SPEED
        )
        self._damage(player, STRIKE_DAMAGE)

        self._cooldown_task = self._spawn(self._after_cooldown(self.generation))

    async def _after_cooldown(self, generation: int):
        await asyncio.sleep(self.strike_cooldown)
        if generation != self.generation or self.state is not MatchState.PLAYING:
            return
        self.request_next_snippet()

    def _handle_completion(self):
        self._log("Commit successful. Restore HP.", "sys")
        player = self.local_player
        player.health = clamp_health(player.health + COMPLETION_HEAL)
        self.request_next_snippet()

    # Snippets
    def request_next_snippet(self):
        """Swap the current snippet out and fetch another in the background.

        Input is rejected until the new snippet arrives.
        """
        exclude = list(self.used_snippet_ids)
        if self.snippet is not None and self.snippet.gitUrl not in exclude:
            exclude.append(self.snippet.gitUrl)

        self._done_correct += self.matcher.correct
        self._done_chars += len(self.matcher.buffer)
        self._done_errors += self.matcher.errors

        previous = self.snippet
        self.snippet = None
        self.matcher.load(None)
        self.loading_snippet = True
        self._fetch_task = self._spawn(self._load_snippet(exclude, self.generation, previous))

    async def _load_snippet(
        self, exclude: List[str], generation: int, previous: Optional[CodeSnippet] = None
    ):
        if generation == self.generation:
            self.loading_snippet = True
        try:
            snippet = await self.snippet_source.fetch_next(exclude)
        except Exception as e:
            logger.warning(f"Snippet source failed: {e}")
            if generation != self.generation:
                return
            self._log("Snippet fetch error.", "err")
            # Keep the match playable with whatever was loaded before
            snippet = previous
            if snippet is None:
                self.loading_snippet = False
                return

        if generation != self.generation:
            logger.info(f"Discarding snippet fetched for abandoned match {generation}")
            return

        self.snippet = snippet
        self.used_snippet_ids = exclude
        self.matcher.load(snippet.code)
        self.loading_snippet = False

    # Simulation
    def tick(self):
        """Advance the world by one fixed step.

        Order matters: the zone shrinks first so exposure uses the new
        radius, and eliminations are resolved before guards look up their
        targets.
        """
        if self.state is not MatchState.PLAYING:
            return

        zone = self.safe_zone
        next_radius, alert = shrink_zone(zone)
        if alert:
            self._sound("alert")
            self._log("Critical: Safe zone shrinking rapidly.", "sys")
        zone.radius = next_radius

        fallen = []
        for player in self.players.values():
            if not player.isAlive:
                continue

            health = player.health
            if is_exposed(player, zone):
                health -= EXPOSURE_DAMAGE

            if player.isBot:
                player.x, player.y = step_bot(player, zone)
                if rolls_attrition(zone, self.rng):
                    health = 0

            player.health = clamp_health(health)
            if player.health <= 0:
                fallen.append(player)

        # Roster order puts the local player first, so bots falling on the
        # same tick still count toward its rank and get spectator lines
        for player in fallen:
            self._eliminate(player)

        self._move_guards()

    def _move_guards(self):
        for guard in list(self.guards.values()):
            target = self.players.get(guard.targetId)
            if target is None or not target.isAlive:
                continue

            guard.x, guard.y = advance_guard(guard, target)
            if is_captured(guard, target):
                del self.guards[guard.id]
                self._sound("elimination")
                self._damage(target, GUARD_DAMAGE)

    def _damage(self, player: Player, amount: float):
        if not player.isAlive:
            return
        player.health = clamp_health(player.health - amount)
        if player.health <= 0:
            self._eliminate(player)

    def _eliminate(self, player: Player):
        if not player.isAlive:
            return
        local_alive = self.local_player.isAlive
        player.health = 0
        player.isAlive = False

        self._sound("elimination")
        self._emit(
            {
                "type": "elimination",
                "playerId": player.id,
                "x": player.x,
                "y": player.y,
                "isLocal": player.id == self.local_player_id,
            }
        )

        if player.id == self.local_player_id:
            self._end_match()
        else:
            self._log(f"Process {player.name} killed.", "err")
            if not local_alive:
                self._chat(f"Spectator: RIP {player.name}")

    def _end_match(self):
        self.state = MatchState.GAMEOVER
        self.matcher.lock()
        elapsed = self.clock() - self.start_time if self.start_time else 0
        self.stats = GameStats(
            rank=self.alive_bots_count() + 1,
            totalPlayers=TOTAL_PLAYERS,
            wpm=self.wpm,
            accuracy=self.accuracy,
            timeSurvived=math.floor(elapsed),
        )
        logger.info(f"Match {self.generation} over: {self.stats}")

        best = self.score_store.save_if_better(self.stats)
        if best is not None:
            self.high_score = best

    # Render boundary
    def snapshot(self) -> dict:
        """Read-only copy of everything a client needs to draw a frame."""
        return {
            "state": self.state.value,
            "localPlayerId": self.local_player_id,
            "players": [asdict(p) for p in self.players.values()],
            "guards": [asdict(g) for g in self.guards.values()],
            "safeZone": asdict(self.safe_zone),
            "aliveCount": self.alive_count(),
            "snippet": asdict(self.snippet) if self.snippet else None,
            "loadingSnippet": self.loading_snippet,
            "input": self.matcher.buffer,
            "errors": self.matcher.errors,
            "striking": self.matcher.latched,
            "wpm": self.wpm,
            "accuracy": self.accuracy,
            "stats": asdict(self.stats) if self.stats else None,
            "highScore": asdict(self.high_score) if self.high_score else None,
            "logs": [asdict(entry) for entry in self.logs],
            "spectatorChat": list(self.spectator_chat),
        }
