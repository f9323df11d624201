"""Shared fixtures and sample documents."""

import copy
import re

import pytest

from dramascore.config import Config, Language, Tokenizer
from dramascore.core.models import Episode


# ---------------------------------------------------------------------------
# Sample scripts
# ---------------------------------------------------------------------------

EN_BODY = """INT. PENTHOUSE - NIGHT
Mia stands at the window, holding the contract.
MIA: I signed it because I need the money for my mother.
Ethan walks in, cold and composed, his suit still sharp.
ETHAN: You think you can just walk away from this deal?
They argue. She glares at him, torn between pride and guilt.
MIA: Tomorrow I will find out who set me up."""

ZH_BODY = """客厅 夜
林晚站在窗前，手里攥着那份合同。
林晚：我签了它，是因为我需要钱给母亲治病。
顾沉推门而入，冷酷又沉稳，西装一丝不乱。
顾沉：你以为你能就这样离开？
两人争吵起来。她瞪着他，心里满是犹豫和愧疚。
林晚：明天我一定会查出是谁陷害了我。"""


def make_en_script(count=15, total=None, paywalls=(), title="Contract Hearts", order=None):
    """English document with `count` well-formed episodes."""
    lines = [f"TITLE: {title}"]
    if total is not None:
        lines.append(f"TOTAL_EPISODES: {total}")
    lines.append("")
    for n in order or range(1, count + 1):
        lines.append(f"EPISODE {n}")
        lines.append(EN_BODY)
        if n in paywalls:
            lines.append("[PAYWALL]")
            lines.append("ETHAN: Then choose. Stay, or lose everything.")
        lines.append("")
    return "\n".join(lines)


def make_zh_script(count=10, total=None):
    lines = ["《契约之心》"]
    if total is not None:
        lines.append(f"TOTAL_EPISODES: {total}")
    lines.append("")
    for n in range(1, count + 1):
        lines.append(f"第{n}集")
        lines.append(ZH_BODY)
        lines.append("")
    return "\n".join(lines)


def make_episodes(count=12, body=EN_BODY, paywalls=()):
    episodes = []
    for n in range(1, count + 1):
        text = body
        if n in paywalls:
            text = f"{body}\n[PAYWALL]\nETHAN: Then choose. Stay, or lose everything."
        episodes.append(Episode(number=n, text=text, paywall_count=1 if n in paywalls else 0))
    return episodes


@pytest.fixture
def en_script():
    return make_en_script(count=15, total=15)


@pytest.fixture
def zh_script():
    return make_zh_script(count=10, total=10)


@pytest.fixture
def en_episodes():
    return make_episodes(count=12, paywalls=(6,))


@pytest.fixture
def en():
    return Language.EN, Tokenizer.WHITESPACE


@pytest.fixture(autouse=True)
def no_retry_backoff(monkeypatch):
    monkeypatch.setattr(Config, "AI_RETRY_BACKOFF_SECONDS", 0)


# ---------------------------------------------------------------------------
# Mock model client
# ---------------------------------------------------------------------------

EPISODE_HEADER_RE = re.compile(r"^### Episode (\d+)", re.MULTILINE)

GLOBAL_SUMMARY = {
    "commercialSummary": "A tight contract romance with a strong decision hook at the paywall.",
    "dimensionNarratives": {
        "monetization": "The paywall lands on a clear decision.",
        "story": "Stakes and motive are clear from the first scene.",
        "market": "Fits the CEO romance audience well.",
    },
    "chartCaptions": {
        "emotion": "Emotion stays level across the run.",
        "conflict": "Internal conflict carries the arc.",
    },
    "diagnosisOverview": {
        "integritySummary": "All episodes are present and complete.",
        "pacingFocusEpisode": 3,
        "pacingIssueLabel": "Slow middle",
        "pacingIssueReason": "Episode 3 repeats the same argument.",
    },
}


def episode_pass_item(number, state="optimal", hook="Decision"):
    return {
        "episode": number,
        "health": "PEAK" if number == 6 else "GOOD",
        "primaryHookType": hook,
        "aiHighlight": f"Episode {number} ends on a sharp choice.",
        "state": state,
        "issueCategory": "pacing",
        "issueLabel": "None" if state == "optimal" else "Slow middle",
        "issueReason": "The middle scene drags.",
        "suggestion": "Cut the second argument.",
        "emotionLevel": "Medium",
        "conflictDensity": "HIGH",
        "pacingScore": 7.25,
        "signalPercent": 72.5,
    }


class MockAsyncClient:
    """Stand-in for AIClient that answers both passes deterministically.

    `leaks` maps a pass name ("episode" or "global") to the number of
    leading responses that contain Chinese text. `skip` drops episodes
    from the episode pass. `states` and `hooks` override per-episode
    fields. Every episode-pass request that covers an episode in
    `fail_episodes` answers with Chinese text.
    """

    def __init__(self, leaks=None, skip=(), states=None, hooks=None, invalid=False, fail_episodes=()):
        self.leaks = dict(leaks or {})
        self.skip = set(skip)
        self.states = states if states is not None else {3: "issue", 5: "neutral"}
        self.hooks = hooks or {}
        self.invalid = invalid
        self.fail_episodes = set(fail_episodes)
        self.calls = []
        self.closed = False

    async def generate_json(self, system_prompt, user_prompt, max_tokens=8192, temperature=0.2):
        name = "episode" if "Episode briefs:" in user_prompt else "global"
        self.calls.append(name)
        leak = self.leaks.get(name, 0) > 0
        if leak:
            self.leaks[name] -= 1

        if name == "global":
            summary = copy.deepcopy(GLOBAL_SUMMARY)
            if leak:
                summary["commercialSummary"] = "一部节奏紧凑的契约爱情短剧，付费点钩子很强。"
            return summary

        numbers = [int(n) for n in EPISODE_HEADER_RE.findall(user_prompt)]
        if self.fail_episodes & set(numbers):
            leak = True

        items = []
        for number in numbers:
            if number in self.skip:
                continue
            item = episode_pass_item(number, self.states.get(number, "optimal"), self.hooks.get(number, "Decision"))
            if self.invalid:
                item["health"] = "GREAT"
            items.append(item)
        if leak and items:
            items[0]["aiHighlight"] = "她在最后一刻做出了选择。"
        return {"episodes": items}

    async def aclose(self):
        self.closed = True
