"""Personality engine — tone analysis, response styling, template bank.

Jarvis is terse, lowercase and a little sassy. Every random choice goes
through one injected ``random.Random`` so a seeded planner is reproducible.
"""
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

import yaml

from jarvis.core import constants as C
from jarvis.core.config import PersonalitySettings, PlannerConfig

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

# ---------------------------------------------------------------------------
# Tone analysis
# ---------------------------------------------------------------------------

_INSULT_PATTERNS = [
    re.compile(
        r"\b(?:stupid|dumb|idiot|moron|suck|sucks|trash|garbage|useless|worst|hate you"
        r"|fuck|shit|ass|bitch|lame)\b",
        _I,
    ),
    re.compile(r"\byou(?:'re| are| r)\s+(?:so\s+)?(?:bad|terrible|awful|annoying|the worst|dumb|stupid|useless)\b", _I),
    re.compile(r"\b(?:shut up|go away|leave me alone)\b", _I),
]
_AGGRESSIVE_PATTERNS = [
    re.compile(r"!{2,}|\?{3,}"),
    re.compile(r"\b[A-Z]{3,}\b"),
    re.compile(r"\b(?:wtf|wth|omg|bruh)\b", _I),
    re.compile(r"\b(?:seriously|come on|ugh)\b", _I),
]
_FRIENDLY_PATTERNS = [
    re.compile(r"\b(?:thanks|thank you|thx|ty|please|pls|appreciate|love|awesome|great|nice)\b", _I),
    re.compile(r"\b(?:hey|hi|hello|yo|sup)\b", _I),
    re.compile("😊|😄|🙏|❤️|👍|🔥"),
]
_LOW_ENERGY = re.compile(r"^(?:k|ok|okay|sure|fine|whatever)[.!]?$", _I)
_GRATITUDE = re.compile(r"\b(?:thanks|thank you|thx|ty|tysm|appreciate it)\b", _I)
_BARE_GREETING = re.compile(r"^(?:hi|hey|hello|yo|sup|what'?s up|wassup|hola|heyo)[.!]*$", _I)


@dataclass
class ToneAnalysis:
    is_insult: bool
    is_aggressive: bool
    is_friendly: bool
    energy: str  # "low" | "medium" | "high"

    @property
    def is_neutral(self) -> bool:
        return not (self.is_insult or self.is_aggressive or self.is_friendly)


def analyze_tone(message: str) -> ToneAnalysis:
    """Classify the tone of an incoming message."""
    text = message or ""
    is_insult = any(p.search(text) for p in _INSULT_PATTERNS)
    is_aggressive = any(p.search(text) for p in _AGGRESSIVE_PATTERNS)
    is_friendly = any(p.search(text) for p in _FRIENDLY_PATTERNS)

    energy = "medium"
    if len(text.strip()) < 10 or _LOW_ENERGY.match(text.strip()):
        energy = "low"
    if is_insult or is_aggressive or "!" in text or re.search(r"[A-Z]{2,}", text):
        energy = "high"

    return ToneAnalysis(is_insult, is_aggressive, is_friendly, energy)


# ---------------------------------------------------------------------------
# Banks
# ---------------------------------------------------------------------------

SASS_PREFIXES = {
    "mild": ["okay so ", "alright ", "look ", ""],
    "medium": ["ugh fine ", "okay okay ", "yeah yeah ", "sigh... ", "if you insist... "],
    "spicy": ["oh my god fine ", "bro... ", "seriously? okay ", "do i have to do everything around here? "],
}
SASS_SUFFIXES = {
    "mild": ["", " 👀", " ✨", ""],
    "medium": [" 💅", " anyway", " there you go", " happy?"],
    "spicy": [" you're welcome btw", " i guess", " smh", " 🙄"],
}
_NO_PREFIX_IF_STARTS = ("okay", "alright", "fine", "ugh", "look")

COMEBACKS = [
    "wow creative. anyway, need something?",
    "ouch. my feelings. anyway...",
    "that's nice. you done?",
    "k. you done venting or what?",
    "sick burn. now what do you actually want?",
    "imagine taking time out of your day to text that lmao",
    "ok and? i'm still here unfortunately for you",
    "bold words from someone texting a bot 💀",
    "noted. moving on...",
]

ACKNOWLEDGMENTS = [
    "yeah yeah you're welcome",
    "don't mention it. seriously don't",
    "that's what i'm here for i guess",
    "np 👍",
    "sure thing",
    "finally some appreciation around here",
    "i know i'm amazing, thanks for noticing",
]

GREETINGS = [
    "sup {name}",
    "hey {name}. what do you need?",
    "oh look who it is. hey {name}",
    "{name}! what's up",
    "yo {name}",
    "{name} hey hey. whatcha need?",
]

GOODBYES = ["later 👋", "peace ✌️", "bye", "k bye", "ttyl"]

APOLOGY_REPLIES = ["all good", "you're fine", "it happens", "np", "don't worry about it"]

EMPTY_REPLIES = ["you sent nothing", "?", "hello?", "you there?", "that was empty lol"]

CONFUSED_REPLIES = [
    "not sure what you mean. need help?",
    "huh? try again",
    "didn't get that. what do you need?",
    "🤔 you lost me. what's up?",
    "speak english pls. what do you want?",
    'idk what "{snippet}" means. help?',
]

QUICK_RESPONSES: dict[str, list[str]] = {
    "ok": ["k", "cool", "👍", "noted"],
    "k": ["ok", "yep", "👍"],
    "lol": ["glad you find this amusing", "lmao", "😂", "hilarious"],
    "lmao": ["ikr", "💀", "fr"],
    "bruh": ["what", "bruh indeed", "🤨"],
    "nice": ["thanks i guess", "ikr", "✨"],
    "cool": ["i know", "yep", "👍"],
    "wow": ["ikr amazing", "i know right", "✨"],
    "damn": ["right?", "ikr", "fr"],
    "true": ["facts", "yep", "fr fr"],
    "fr": ["fr fr", "on god", "facts"],
    "bet": ["bet", "👍", "cool"],
    "ight": ["aight", "👍", "bet"],
    "aight": ["cool", "👍", "bet"],
    "word": ["word", "fr", "👍"],
    "facts": ["fr", "on god", "yep"],
    "idk": ["same tbh", "fair enough", "mood"],
    "?": ["use your words", "what", "🤨"],
    "??": ["???", "huh", "speak"],
    "???": ["bro what", "use words pls", "🤨"],
}

EASTER_EGGS: dict[str, list[str]] = {
    "meaning of life": ["42", "42. obviously.", "it's 42. google it."],
    "tell me a joke": [
        "why do programmers prefer dark mode? because light attracts bugs 🐛",
        "i would tell you a UDP joke but you might not get it",
        "there are only 10 types of people: those who understand binary and those who don't",
    ],
    "i love you": ["ok weird but thanks i guess", "that's nice. anyway...", "i'm a bot bestie. but thanks"],
    "good morning": ["is it? anyway what do you need", "morning. sup", "mornin 🌅"],
    "good night": ["night 🌙", "sleep tight", "later"],
    "how are you": [
        "functioning within normal parameters 🤖",
        "i'm a bot so... fine i guess",
        "living my best digital life. you?",
    ],
}

# ---------------------------------------------------------------------------
# Factual-content detection
# ---------------------------------------------------------------------------

_FACTUAL_MARKERS = re.compile(
    r"https?://|www\."
    r"|\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b|\b\d{1,2}:\d{2}\b"
    r"|\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b|\b\d{4}-\d{2}-\d{2}\b"
    r"|\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}\b"
    r"|\b(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)s?\b",
    _I,
)
_RE_ENDS_WITH_EMOJI = re.compile("[☀-➿\U0001f300-\U0001faff]️?$")


def is_informational(response: str, threshold: int = C.STYLING_THRESHOLD) -> bool:
    """Long, multi-line or fact-bearing responses are never decorated."""
    return (
        len(response) > threshold
        or "\n" in response
        or bool(_FACTUAL_MARKERS.search(response))
    )


# ---------------------------------------------------------------------------
# Template bank
# ---------------------------------------------------------------------------


class TemplateBank:
    """Multi-variant response templates. Each call picks one variant."""

    def __init__(self, pick: Callable[[Sequence[str]], str]) -> None:
        self._pick = pick

    def draft_created(self, draft_type: str, content: str, note: str = "") -> str:
        text = self._pick([
            '📝 here\'s the {t}:\n\n"{c}"\n\nreply "send" to blast it out or tell me to change it',
            'ok here\'s your {t}:\n\n"{c}"\n\nsay "send" when you\'re ready, or keep editing',
            '{t} drafted:\n\n"{c}"\n\nlooks good? reply "send" or tell me what to change',
        ]).format(t=draft_type, c=content)
        return f"{text}\n\n{note}" if note else text

    def draft_updated(self, content: str) -> str:
        return self._pick([
            'updated:\n\n"{c}"\n\nlooks good? say "send" or keep editing',
            'fixed it:\n\n"{c}"\n\nreply "send" when you\'re happy',
            'new version:\n\n"{c}"\n\nsay "send" to ship it',
        ]).format(c=content)

    def draft_sent(self, count: int) -> str:
        people = "person" if count == 1 else "people"
        return self._pick([
            "done. sent to {n} {p} 💅",
            "sent to {n} {p}. you're welcome",
            "boom. {n} {p} got it",
        ]).format(n=count, p=people)

    def ask_for_content(self, draft_type: str) -> str:
        if draft_type == C.POLL:
            return self._pick([
                "what do you wanna ask everyone?",
                "sure. what do you wanna ask everyone? send me the question",
            ])
        return self._pick([
            "what do you wanna announce?",
            "ok, what do you wanna announce? give me the text",
        ])

    def ask_for_link(self, draft_type: str) -> str:
        return self._pick([
            "got it, but this looks like it needs a link (rsvp, form, etc). "
            "send me the link and i'll add it to the {t}, or say skip",
            "this {t} mentions a form or rsvp but there's no url. send me the link (or say skip)",
        ]).format(t=draft_type)

    def link_missing(self, draft_type: str) -> str:
        return self._pick([
            "didn't catch a link there. send me the link for this {t} (or say skip)",
            "that's not a link. send me the link or say skip",
        ]).format(t=draft_type)

    def ask_mandatory(self) -> str:
        return self._pick([
            'is this mandatory? reply "yes" if people need a reason to say no, "no" if not',
            'quick q: mandatory? "yes" means anyone saying no has to give a reason. "yes" or "no"?',
        ])

    def mandatory_check(self, draft_type: str, content: str) -> str:
        return f'📊 here\'s the {draft_type}:\n\n"{content}"\n\n' + self.ask_mandatory()

    def draft_cancelled(self) -> str:
        return self._pick([
            "scrapped. let me know if you wanna start over",
            "gone. poof 🗑️",
            "deleted. it never happened",
        ])

    def nothing_to_cancel(self) -> str:
        return self._pick(["nothing to cancel rn", "there's nothing to cancel lol"])

    def no_draft(self) -> str:
        return self._pick([
            "you don't have anything drafted rn. wanna make an announcement or poll?",
            "send what? there's no draft. try \"announce ...\" or \"poll ...\"",
        ])

    def not_admin(self) -> str:
        return self._pick([
            "nice try but you can't do that. only admins can",
            "that's an admin thing. you're not an admin. sorry not sorry",
        ])

    def capabilities(self, is_admin: bool) -> str:
        if is_admin:
            return self._pick([
                'i can:\n📢 send announcements ("announce [message]")\n📊 create polls ("poll [question]")\n'
                "📅 update events\n🧠 remember org info you text me\n💬 answer questions about the org\n\n"
                "or just chat if you're bored",
                "here's what i do:\n- announcements: \"announce ...\"\n- polls: \"poll ...\"\n"
                "- event changes and org notes\n- answer questions about what's going on",
            ])
        return self._pick([
            'i can:\n💬 answer questions about the org\n📊 take your poll answers\n📢 send announcements ("announce [message]")\n\n'
            "just text me what you need",
            "here's what i do:\n- answer questions about events and stuff\n- record your poll answers\n"
            "- help with announcements and polls",
        ])

    def no_results(self) -> str:
        return self._pick([
            "idk what you're asking about tbh. try being more specific?",
            "got nothing on that. try asking a different way?",
        ])

    def confused(self) -> str:
        return self._pick([
            "not sure what you mean. need help with something?",
            "you lost me. what do you need?",
        ])

    def no_active_poll(self) -> str:
        return self._pick(["no active poll right now", "there's no poll going on rn"])

    def poll_recorded(self, response: str, notes: str | None) -> str:
        text = self._pick(["got it! recorded: {r}", "noted: {r}", "locked in: {r}"]).format(r=response)
        if notes:
            text += f' (note: "{notes}")'
        return text

    def ask_reason(self) -> str:
        return self._pick([
            "this one's mandatory so i need a reason. why can't you make it?",
            "ok but it's mandatory. what's the reason?",
        ])

    def send_failed(self, error: str | None = None) -> str:
        if error is not None:
            return f"failed to send. try again? error: {error}"
        return self._pick([
            "couldn't send that rn. try \"send\" again in a bit",
            "something broke on my end. say \"send\" to retry",
        ])

    def something_broke(self) -> str:
        return self._pick([
            "something went wrong on my end. try again?",
            "ugh, i glitched. say that again?",
        ])


# ---------------------------------------------------------------------------
# Personality
# ---------------------------------------------------------------------------


class Personality:
    """Styles responses and serves the random banks.

    Args:
        settings: Tone knobs (base tone, energy matching, emoji).
        rng: Random source. Pass a seeded ``random.Random`` for reproducibility.
        threshold: Responses longer than this are never decorated.
    """

    def __init__(
        self,
        settings: PersonalitySettings | None = None,
        rng: random.Random | None = None,
        threshold: int = C.STYLING_THRESHOLD,
    ) -> None:
        self.settings = settings or PersonalitySettings()
        self.rng = rng or random.Random()
        self.threshold = threshold
        self.templates = TemplateBank(self.pick)
        self.comebacks = COMEBACKS + list(self.settings.extra_comebacks)
        self.greetings = GREETINGS + list(self.settings.extra_greetings)

    def pick(self, bank: Sequence[str]) -> str:
        return self.rng.choice(list(bank))

    # --- Special-case replies ---

    def comeback(self) -> str:
        return self.pick(self.comebacks)

    def acknowledgment(self) -> str:
        return self.pick(ACKNOWLEDGMENTS)

    def greeting(self, user_name: str | None) -> str:
        return self.pick(self.greetings).format(name=user_name or "you")

    def goodbye(self) -> str:
        return self.pick(GOODBYES)

    def apology_reply(self) -> str:
        return self.pick(APOLOGY_REPLIES)

    def empty_reply(self) -> str:
        return self.pick(EMPTY_REPLIES)

    def confused_reply(self, message: str) -> str:
        snippet = message if len(message) <= 20 else message[:20] + "..."
        return self.pick(CONFUSED_REPLIES).format(snippet=snippet)

    def quick_response(self, message: str) -> str | None:
        bank = QUICK_RESPONSES.get(message.strip().lower())
        return self.pick(bank) if bank else None

    def easter_egg(self, message: str) -> str | None:
        lower = message.lower()
        for trigger, bank in EASTER_EGGS.items():
            if trigger in lower:
                return self.pick(bank)
        return None

    # --- Styling ---

    def sass_level(self, tone: ToneAnalysis) -> str:
        level = self.settings.base_tone
        if self.settings.match_user_energy:
            if tone.is_aggressive or tone.energy == "high":
                level = "spicy"
            elif tone.is_friendly:
                level = "mild"
        return level

    def _decorate(self, response: str, level: str) -> str:
        prefixes = SASS_PREFIXES[level]
        suffixes = SASS_SUFFIXES[level]
        if not self.settings.use_emoji:
            suffixes = [s for s in suffixes if not _RE_ENDS_WITH_EMOJI.search(s)] or [""]
        prefix = self.pick(prefixes)
        suffix = self.pick(suffixes)

        result = response
        if not result.lower().startswith(_NO_PREFIX_IF_STARTS):
            result = prefix + result
        if not _RE_ENDS_WITH_EMOJI.search(result):
            result = result + suffix
        return result

    def style(self, response: str, user_message: str, user_name: str | None = None) -> str:
        """Apply personality to a base response.

        Informational responses come back verbatim. Otherwise insults,
        gratitude and bare greetings get a dedicated reply, and anything else
        gets sass decoration scaled to the user's tone.
        """
        if not response or is_informational(response, self.threshold):
            return response

        tone = analyze_tone(user_message)
        if tone.is_insult and self.settings.match_user_energy:
            return self.comeback()
        if _GRATITUDE.search(user_message or ""):
            return self.acknowledgment()
        if _BARE_GREETING.match((user_message or "").strip()):
            return self.greeting(user_name)

        result = self._decorate(response, self.sass_level(tone))
        if result[:1].isupper() and not result[:2].isupper():
            result = result[0].lower() + result[1:]
        return result


def load_personality_settings(path: str | Path, base: PersonalitySettings | None = None) -> PersonalitySettings:
    """Overlay YAML personality overrides onto ``base``.

    Recognized keys: base_tone, match_user_energy, use_emoji, comebacks, greetings.
    A missing file returns ``base`` unchanged.
    """
    settings = base or PersonalitySettings()
    p = Path(path)
    if not p.is_file():
        logger.warning("Personality file not found: %s", p)
        return settings

    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{p}: expected a mapping, got {type(data).__name__}")

    return PersonalitySettings(
        base_tone=str(data.get("base_tone", settings.base_tone)),
        match_user_energy=bool(data.get("match_user_energy", settings.match_user_energy)),
        use_emoji=bool(data.get("use_emoji", settings.use_emoji)),
        extra_comebacks=[str(s) for s in data.get("comebacks") or settings.extra_comebacks],
        extra_greetings=[str(s) for s in data.get("greetings") or settings.extra_greetings],
    )


def build_personality(config: PlannerConfig) -> Personality:
    """Personality for a PlannerConfig: YAML overrides applied, rng seeded from ``config.seed``."""
    settings = config.personality
    if config.personality_file:
        settings = load_personality_settings(config.personality_file, settings)
    return Personality(settings, random.Random(config.seed), config.styling_threshold)
