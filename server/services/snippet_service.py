# server/services/snippet_service.py
"""Code snippet acquisition from GitHub with a bundled fallback pool."""

import base64
import logging
import random
from typing import Iterable, List, Optional

import httpx

from models.entities import CodeSnippet
from config.settings import (
    GITHUB_API_URL,
    GITHUB_TOKEN,
    MIN_SNIPPET_LENGTH,
    SNIPPET_LINES,
    SNIPPET_MAX_PAGE,
    SNIPPET_PICK_WINDOW,
    SNIPPET_REMOTE_ENABLED,
    SNIPPET_TIMEOUT,
)

logger = logging.getLogger(__name__)

POPULAR_REPOS = [
    {"owner": "facebook", "repo": "react", "lang": "javascript"},
    {"owner": "python", "repo": "cpython", "lang": "python"},
    {"owner": "microsoft", "repo": "vscode", "lang": "typescript"},
    {"owner": "tensorflow", "repo": "tensorflow", "lang": "python"},
    {"owner": "django", "repo": "django", "lang": "python"},
    {"owner": "nodejs", "repo": "node", "lang": "javascript"},
    {"owner": "golang", "repo": "go", "lang": "go"},
    {"owner": "rust-lang", "repo": "rust", "lang": "rust"},
]

LANGUAGE_EXTENSIONS = {
    "python": "py",
    "typescript": "ts",
    "rust": "rs",
    "go": "go",
}

START_PREFIXES = ("function", "class", "def", "const ", "pub fn", "export ")
COMMENT_PREFIXES = ("//", "#", "*", "/*")

FALLBACK_SNIPPETS = [
    CodeSnippet(
        code=(
            "function useInterval(callback, delay) {\n"
            "  const savedCallback = useRef();\n"
            "  useEffect(() => {\n"
            "    savedCallback.current = callback;\n"
            "  }, [callback]);\n"
            "  useEffect(() => {\n"
            "    if (delay !== null) {\n"
            "      let id = setInterval(() => savedCallback.current(), delay);\n"
            "      return () => clearInterval(id);\n"
            "    }\n"
            "  }, [delay]);\n"
            "}"
        ),
        language="javascript",
        repo="facebook/react",
        fileName="useInterval.js",
        gitUrl="fallback-1",
    ),
    CodeSnippet(
        code=(
            "const calculateDistance = (p1, p2) => {\n"
            "  const dx = p1.x - p2.x;\n"
            "  const dy = p1.y - p2.y;\n"
            "  return Math.sqrt(dx * dx + dy * dy);\n"
            "};\n"
            "\n"
            "export const getNearestNeighbor = (point, others) => {\n"
            "  return others.reduce((prev, curr) => {\n"
            "    const d = calculateDistance(point, curr);\n"
            "    return d < prev.dist ? { point: curr, dist: d } : prev;\n"
            "  }, { point: null, dist: Infinity });\n"
            "};"
        ),
        language="javascript",
        repo="algorithms/geo",
        fileName="geoUtils.js",
        gitUrl="fallback-2",
    ),
    CodeSnippet(
        code=(
            "def fetch_data(api_url, timeout=30):\n"
            "    try:\n"
            "        response = requests.get(api_url, timeout=timeout)\n"
            "        response.raise_for_status()\n"
            "        return response.json()\n"
            "    except RequestException as e:\n"
            "        logging.error(f\"API request failed: {e}\")\n"
            "        return None\n"
            "\n"
            "@app.route(\"/api/v1/resource\")\n"
            "def get_resource():\n"
            "    data = fetch_data(RESOURCE_URL)\n"
            "    return jsonify(data) if data else (404, \"Not Found\")"
        ),
        language="python",
        repo="django/core",
        fileName="api.py",
        gitUrl="fallback-3",
    ),
]


class SnippetError(Exception):
    """Raised when remote content cannot be turned into a snippet."""


def extract_snippet(source: str, rng: random.Random) -> str:
    """Cut a short, comment-free excerpt out of a source file.

    The excerpt starts at the first top-level looking definition (or a random
    offset when there is none) and spans at most ``SNIPPET_LINES`` lines.
    """
    lines = source.split("\n")
    start = next(
        (i for i, line in enumerate(lines) if line.strip().startswith(START_PREFIXES)),
        None,
    )
    if start is None:
        start = rng.randrange(max(1, len(lines) - SNIPPET_LINES))

    kept = []
    for line in lines[start:start + SNIPPET_LINES]:
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_PREFIXES):
            continue
        kept.append(line)

    cleaned = "\n".join(kept).replace("\t", "  ").strip()
    if len(cleaned) < MIN_SNIPPET_LENGTH:
        raise SnippetError("Snippet too small")
    return cleaned


def pick_fallback(exclude: Iterable[str], rng: random.Random) -> CodeSnippet:
    """Pick a bundled snippet, preferring ones not already used."""
    excluded = set(exclude)
    candidates = [s for s in FALLBACK_SNIPPETS if s.gitUrl not in excluded]
    return rng.choice(candidates or FALLBACK_SNIPPETS)


class SnippetService:
    """Supplies the next text to type.

    ``fetch_next`` never raises: every remote failure degrades to the
    bundled pool.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
        remote_enabled: bool = SNIPPET_REMOTE_ENABLED,
        token: str = GITHUB_TOKEN,
    ):
        self._owns_client = client is None
        self.client = client
        self.rng = rng or random.Random()
        self.remote_enabled = remote_enabled
        self.token = token

    def _headers(self) -> dict:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=SNIPPET_TIMEOUT)
        return self.client

    async def fetch_next(self, exclude: Iterable[str] = ()) -> CodeSnippet:
        """Get a snippet whose origin is not in ``exclude`` when possible."""
        exclude = list(exclude)
        if not self.remote_enabled:
            return pick_fallback(exclude, self.rng)

        try:
            return await self._fetch_remote(exclude)
        except (httpx.HTTPError, SnippetError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Snippet fetch failed, using fallback pool: {e}")
            return pick_fallback(exclude, self.rng)

    async def _fetch_remote(self, exclude: List[str]) -> CodeSnippet:
        target = self.rng.choice(POPULAR_REPOS)
        ext = LANGUAGE_EXTENSIONS.get(target["lang"], "js")
        page = self.rng.randint(1, SNIPPET_MAX_PAGE)
        client = self._get_client()

        search = await client.get(
            f"{GITHUB_API_URL}/search/code",
            params={
                "q": f"extension:{ext} repo:{target['owner']}/{target['repo']} size:>2000",
                "page": page,
            },
            headers=self._headers(),
        )
        search.raise_for_status()
        payload = search.json()
        if not isinstance(payload, dict):
            raise SnippetError("Unexpected search response")
        items = payload.get("items") or []
        if not items:
            raise SnippetError("No items found")

        available = [item for item in items if item["git_url"] not in exclude]
        selection = available or items
        chosen = self.rng.choice(selection[:SNIPPET_PICK_WINDOW])

        blob = await client.get(chosen["git_url"], headers=self._headers())
        blob.raise_for_status()
        decoded = base64.b64decode(blob.json()["content"]).decode("utf-8")

        return CodeSnippet(
            code=extract_snippet(decoded, self.rng),
            language=target["lang"],
            repo=f"{target['owner']}/{target['repo']}",
            fileName=chosen["name"],
            gitUrl=chosen["git_url"],
        )

    async def aclose(self):
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None
