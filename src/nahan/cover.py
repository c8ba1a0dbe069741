"""Cover text selection and the NH01 stealth score.

A stego string only looks innocent when the cover is long enough to absorb
every tag inline; tags that do not fit are appended after the last visible
character. :func:`calculate_stealth_ratio` scores a cover on that basis and
:func:`get_recommended_cover` picks a poem that is just long enough.
"""

from __future__ import annotations

import logging
import math
import random
import secrets
from dataclasses import dataclass

from .script import Language
from .tags import UnicodeTagsProvider
from .utils import StegoEncodeError

logger = logging.getLogger(__name__)

# Extra room on top of the exact requirement when picking a poem
SAFETY_MARGIN = 1.05
MIN_POOL = 5
MAX_POOL = 10


@dataclass(frozen=True)
class Poem:
    """A public-domain poem, stored verse by verse."""

    id: str
    poet: str
    title: str
    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return " ".join(self.lines)

    @property
    def visible_chars(self) -> int:
        return visible_char_count(self.text)


# ---------------------------------------------------------------------------
# Poem collection
# ---------------------------------------------------------------------------

POEMS: dict[Language, tuple[Poem, ...]] = {
    Language.FA: (
        Poem(
            "fa-ferdowsi-1",
            "Ferdowsi",
            "Shahnameh",
            (
                "توانا بود هر که دانا بود",
                "ز دانش دل پیر برنا بود",
            ),
        ),
        Poem(
            "fa-khayyam-1",
            "Khayyam",
            "Rubaiyat",
            (
                "این قافله عمر عجب می گذرد",
                "دریاب دمی که با طرب می گذرد",
                "ساقی غم فردای حریفان چه خوری",
                "پیش آر پیاله را که شب می گذرد",
            ),
        ),
        Poem(
            "fa-khayyam-2",
            "Khayyam",
            "Rubaiyat",
            (
                "از دی که گذشت هیچ از او یاد مکن",
                "فردا که نیامده است فریاد مکن",
                "بر نامده و گذشته بنیاد مکن",
                "حالی خوش باش و عمر بر باد مکن",
            ),
        ),
        Poem(
            "fa-khayyam-3",
            "Khayyam",
            "Rubaiyat",
            (
                "این کوزه چو من عاشق زاری بوده است",
                "در بند سر زلف نگاری بوده است",
                "این دسته که بر گردن او می بینی",
                "دستی است که بر گردن یاری بوده است",
            ),
        ),
        Poem(
            "fa-saadi-1",
            "Saadi",
            "Golestan",
            (
                "بنی آدم اعضای یکدیگرند",
                "که در آفرینش ز یک گوهرند",
                "چو عضوی به درد آورد روزگار",
                "دگر عضوها را نماند قرار",
                "تو کز محنت دیگران بی غمی",
                "نشاید که نامت نهند آدمی",
            ),
        ),
        Poem(
            "fa-rumi-1",
            "Rumi",
            "Masnavi",
            (
                "بشنو این نی چون شکایت می کند",
                "از جداییها حکایت می کند",
                "کز نیستان تا مرا ببریده اند",
                "در نفیرم مرد و زن نالیده اند",
                "سینه خواهم شرحه شرحه از فراق",
                "تا بگویم شرح درد اشتیاق",
                "هر کسی کو دور ماند از اصل خویش",
                "باز جوید روزگار وصل خویش",
            ),
        ),
        Poem(
            "fa-hafez-1",
            "Hafez",
            "Ghazal 1",
            (
                "الا یا ایها الساقی ادر کاسا و ناولها",
                "که عشق آسان نمود اول ولی افتاد مشکلها",
                "به بوی نافه ای کاخر صبا زان طره بگشاید",
                "ز تاب جعد مشکینش چه خون افتاد در دلها",
                "مرا در منزل جانان چه امن عیش چون هر دم",
                "جرس فریاد می دارد که بربندید محملها",
                "به می سجاده رنگین کن گرت پیر مغان گوید",
                "که سالک بیخبر نبود ز راه و رسم منزلها",
                "شب تاریک و بیم موج و گردابی چنین هایل",
                "کجا دانند حال ما سبکباران ساحلها",
            ),
        ),
    ),
    Language.EN: (
        Poem(
            "en-dickinson-1",
            "Emily Dickinson",
            "Hope is the thing with feathers",
            (
                "Hope is the thing with feathers",
                "That perches in the soul",
                "And sings the tune without the words",
                "And never stops at all",
                "And sweetest in the gale is heard",
                "And sore must be the storm",
                "That could abash the little bird",
                "That kept so many warm",
                "I have heard it in the chillest land",
                "And on the strangest sea",
                "Yet never in extremity",
                "It asked a crumb of me",
            ),
        ),
        Poem(
            "en-shelley-1",
            "Percy Bysshe Shelley",
            "Ozymandias",
            (
                "I met a traveller from an antique land",
                "Who said Two vast and trunkless legs of stone",
                "Stand in the desert Near them on the sand",
                "Half sunk a shattered visage lies whose frown",
                "And wrinkled lip and sneer of cold command",
                "Tell that its sculptor well those passions read",
                "Which yet survive stamped on these lifeless things",
                "The hand that mocked them and the heart that fed",
                "And on the pedestal these words appear",
                "My name is Ozymandias King of Kings",
                "Look on my Works ye Mighty and despair",
                "Nothing beside remains Round the decay",
                "Of that colossal Wreck boundless and bare",
                "The lone and level sands stretch far away",
            ),
        ),
        Poem(
            "en-shakespeare-18",
            "William Shakespeare",
            "Sonnet 18",
            (
                "Shall I compare thee to a summer's day",
                "Thou art more lovely and more temperate",
                "Rough winds do shake the darling buds of May",
                "And summer's lease hath all too short a date",
                "Sometime too hot the eye of heaven shines",
                "And often is his gold complexion dimm'd",
                "And every fair from fair sometime declines",
                "By chance or nature's changing course untrimm'd",
                "But thy eternal summer shall not fade",
                "Nor lose possession of that fair thou ow'st",
                "Nor shall Death brag thou wander'st in his shade",
                "When in eternal lines to time thou grow'st",
                "So long as men can breathe or eyes can see",
                "So long lives this and this gives life to thee",
            ),
        ),
        Poem(
            "en-wordsworth-1",
            "William Wordsworth",
            "I Wandered Lonely as a Cloud",
            (
                "I wandered lonely as a cloud",
                "That floats on high o'er vales and hills",
                "When all at once I saw a crowd",
                "A host of golden daffodils",
                "Beside the lake beneath the trees",
                "Fluttering and dancing in the breeze",
                "Continuous as the stars that shine",
                "And twinkle on the milky way",
                "They stretched in never-ending line",
                "Along the margin of a bay",
                "Ten thousand saw I at a glance",
                "Tossing their heads in sprightly dance",
                "The waves beside them danced but they",
                "Out-did the sparkling waves in glee",
                "A poet could not but be gay",
                "In such a jocund company",
                "I gazed and gazed but little thought",
                "What wealth the show to me had brought",
            ),
        ),
        Poem(
            "en-blake-1",
            "William Blake",
            "The Tyger",
            (
                "Tyger Tyger burning bright",
                "In the forests of the night",
                "What immortal hand or eye",
                "Could frame thy fearful symmetry",
                "In what distant deeps or skies",
                "Burnt the fire of thine eyes",
                "On what wings dare he aspire",
                "What the hand dare seize the fire",
                "And what shoulder and what art",
                "Could twist the sinews of thy heart",
                "And when thy heart began to beat",
                "What dread hand and what dread feet",
                "What the hammer what the chain",
                "In what furnace was thy brain",
                "What the anvil what dread grasp",
                "Dare its deadly terrors clasp",
                "When the stars threw down their spears",
                "And water'd heaven with their tears",
                "Did he smile his work to see",
                "Did he who made the Lamb make thee",
                "Tyger Tyger burning bright",
                "In the forests of the night",
                "What immortal hand or eye",
                "Dare frame thy fearful symmetry",
            ),
        ),
    ),
}


# ---------------------------------------------------------------------------
# Scoring and selection
# ---------------------------------------------------------------------------


def visible_char_count(text: str) -> int:
    """Count the characters of *text* that can carry tags (non-whitespace)."""
    return sum(1 for ch in text if not ch.isspace())


def calculate_stealth_ratio(
    payload_size: int, cover_text: str, provider: UnicodeTagsProvider | None = None
) -> int:
    """Score how well *cover_text* hides an NH01 payload, from 0 to 100.

    100 means every tag lands after a visible cover character; lower scores
    are the share of the required characters the cover actually has, the
    rest of the tags being appended at the end.

    Args:
        payload_size: Payload (envelope) length in bytes.
        cover_text: Candidate cover text.
        provider: NH01 provider used for framing; a default one when omitted.

    Returns:
        The score, an integer from 0 to 100.
    """
    if not cover_text:
        return 0
    if payload_size <= 0:
        return 100

    provider = provider or UnicodeTagsProvider()
    required = provider.cover_chars_needed(payload_size)
    available = visible_char_count(cover_text)
    score = min(100, round(available * 100 / required))
    logger.debug(
        "Stealth score %d: %d of %d visible characters for %d payload bytes",
        score,
        available,
        required,
        payload_size,
    )
    return score


def get_recommended_cover(
    payload_size: int,
    language: Language | str,
    rng: random.Random | None = None,
    provider: UnicodeTagsProvider | None = None,
) -> str:
    """Pick a poem long enough to carry *payload_size* bytes inline.

    Poems that fit are sorted by length and one of the shortest few is
    chosen at random. Whole verses are then taken until the requirement,
    plus a small margin, is met. If no poem fits, the longest one is
    returned in full.

    Args:
        payload_size: Payload (envelope) length in bytes.
        language: ``fa`` or ``en``.
        rng: Random source; a :class:`secrets.SystemRandom` when omitted.
        provider: NH01 provider used for framing; a default one when omitted.

    Returns:
        The cover text.

    Raises:
        StegoEncodeError: If there are no poems for *language*.
    """
    language = Language(language)
    poems = POEMS.get(language)
    if not poems:
        raise StegoEncodeError(f"No cover poems for language {language.value!r}")

    provider = provider or UnicodeTagsProvider()
    required = math.ceil(provider.cover_chars_needed(max(payload_size, 0)) * SAFETY_MARGIN)

    candidates = sorted(
        (poem for poem in poems if poem.visible_chars >= required),
        key=lambda poem: poem.visible_chars,
    )
    if not candidates:
        longest = max(poems, key=lambda poem: poem.visible_chars)
        logger.warning(
            "No %s poem holds %d visible characters; using %s in full",
            language.value,
            required,
            longest.id,
        )
        return longest.text

    pool = candidates[: min(MAX_POOL, max(MIN_POOL, len(candidates)))]
    poem = (rng or secrets.SystemRandom()).choice(pool)
    logger.debug("Recommended cover %s for %d payload bytes", poem.id, payload_size)

    verses: list[str] = []
    for line in poem.lines:
        if visible_char_count(" ".join(verses)) >= required:
            break
        verses.append(line)
    return " ".join(verses)
