"""Prompt templates for diary, scene-analysis and tag generation.

Diary prompts are assembled from an ordered list of sections. Each section is
a pure function of ``PromptParams`` returning text or None; absent sections
are skipped and the rest are joined with blank lines:

1. Header naming the title and body markers
2. Location line
3. Context/background block
4. Multi-photo: date, combined time span and the numbered scene analyses
5. Single-photo: the photo's time segment
6. Custom writing prompt block
7. Length-calibrated output instructions
8. Closing guidance with the caller's emphasis phrase

Privacy Notes:
- Prompts contain the writer's location and context text; never log them.

Example:
    >>> from smart_diary.ai.prompts import build_single_image_prompt, PromptParams
    >>> params = PromptParams(
    ...     language=Language.ENGLISH,
    ...     diary_length=DiaryLength.STANDARD,
    ...     emphasis=optimization_params(PromptCategory.EMOTION, Language.ENGLISH,
    ...                                  DiaryLength.STANDARD).emphasis,
    ...     photo_times=(datetime(2025, 3, 15, 8, 0),),
    ... )
    >>> prompt = build_single_image_prompt(params)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, NamedTuple, Sequence

from smart_diary.ai import locale_utils
from smart_diary.ai.time_segment import label_for, segment_for, time_of_day_for_photos
from smart_diary.core.models import DiaryLength, Language, OptimizationParams, PromptCategory

# =============================================================================
# Markers
# =============================================================================

TITLE_MARKERS = {Language.JAPANESE: "【タイトル】", Language.ENGLISH: "[Title]"}
BODY_MARKERS = {Language.JAPANESE: "【本文】", Language.ENGLISH: "[Body]"}


# =============================================================================
# Prompt Categories
# =============================================================================

CATEGORY_KEYWORDS: dict[PromptCategory, tuple[str, ...]] = {
    PromptCategory.EMOTION: ("感情", "気持ち", "感じ", "心", "emotion", "feeling", "feelings", "heart"),
    PromptCategory.GROWTH: ("成長", "変化", "発見", "気づき", "growth", "change", "learning", "discovery"),
    PromptCategory.CONNECTION: (
        "つながり",
        "人",
        "関係",
        "connection",
        "relationship",
        "together",
        "community",
    ),
    PromptCategory.HEALING: ("癒し", "平和", "安らぎ", "healing", "calm", "peace", "restful"),
}

# (standard, short) token budgets per category and language
TOKEN_BUDGETS: dict[PromptCategory, dict[Language, tuple[int, int]]] = {
    PromptCategory.EMOTION: {Language.JAPANESE: (300, 180), Language.ENGLISH: (360, 160)},
    PromptCategory.GROWTH: {Language.JAPANESE: (320, 190), Language.ENGLISH: (380, 170)},
    PromptCategory.CONNECTION: {Language.JAPANESE: (310, 185), Language.ENGLISH: (370, 165)},
    PromptCategory.HEALING: {Language.JAPANESE: (290, 170), Language.ENGLISH: (360, 160)},
}

EMPHASIS: dict[PromptCategory, dict[Language, str]] = {
    PromptCategory.EMOTION: {
        Language.JAPANESE: "感情の深みを大切にして",
        Language.ENGLISH: "captures emotional depth and nuance",
    },
    PromptCategory.GROWTH: {
        Language.JAPANESE: "成長と変化に焦点を当てて",
        Language.ENGLISH: "highlights personal growth and change",
    },
    PromptCategory.CONNECTION: {
        Language.JAPANESE: "人とのつながりや関係性を重視して",
        Language.ENGLISH: "emphasises meaningful relationships and connection",
    },
    PromptCategory.HEALING: {
        Language.JAPANESE: "穏やかで心安らぐ文体で",
        Language.ENGLISH: "feels calm, gentle, and restorative",
    },
}


def analyze_prompt_type(prompt: str | None) -> PromptCategory:
    """Infer the category of a custom writing prompt.

    Categories are checked in declaration order; no prompt or no match means
    ``EMOTION``.
    """
    if prompt is None or not prompt.strip():
        return PromptCategory.EMOTION
    lowered = prompt.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return PromptCategory.EMOTION


def optimization_params(
    category: PromptCategory,
    language: Language,
    diary_length: DiaryLength = DiaryLength.STANDARD,
) -> OptimizationParams:
    standard, short = TOKEN_BUDGETS[category][language]
    return OptimizationParams(
        max_output_tokens=short if diary_length is DiaryLength.SHORT else standard,
        emphasis=EMPHASIS[category][language],
    )


# =============================================================================
# Length Ranges
# =============================================================================


class LengthRange(NamedTuple):
    title: tuple[int, int]
    body: tuple[int, int]


# Japanese counts characters, English counts words
SINGLE_LENGTHS: dict[Language, dict[DiaryLength, LengthRange]] = {
    Language.JAPANESE: {
        DiaryLength.STANDARD: LengthRange(title=(5, 10), body=(150, 200)),
        DiaryLength.SHORT: LengthRange(title=(3, 6), body=(40, 70)),
    },
    Language.ENGLISH: {
        DiaryLength.STANDARD: LengthRange(title=(3, 6), body=(70, 90)),
        DiaryLength.SHORT: LengthRange(title=(2, 3), body=(15, 25)),
    },
}

MULTI_LENGTHS: dict[Language, dict[DiaryLength, LengthRange]] = {
    Language.JAPANESE: {
        DiaryLength.STANDARD: LengthRange(title=(5, 10), body=(150, 220)),
        DiaryLength.SHORT: LengthRange(title=(3, 6), body=(50, 80)),
    },
    Language.ENGLISH: {
        DiaryLength.STANDARD: LengthRange(title=(3, 6), body=(80, 100)),
        DiaryLength.SHORT: LengthRange(title=(2, 3), body=(20, 30)),
    },
}


# =============================================================================
# Parameters
# =============================================================================


@dataclass(frozen=True)
class PromptParams:
    """Inputs shared by the single- and multi-photo diary prompts.

    Attributes:
        language: Output language.
        diary_length: Short or standard.
        emphasis: Tone phrase from ``optimization_params``.
        photo_times: Photo timestamps in input order.
        location: Optional free-text location.
        context_text: Optional background supplied by the writer.
        custom_prompt: Optional writing prompt to weave in.
        analyses: Multi-photo only: scene analyses in input order.
    """

    language: Language
    diary_length: DiaryLength
    emphasis: str
    photo_times: tuple[datetime, ...] = ()
    location: str | None = None
    context_text: str | None = None
    custom_prompt: str | None = None
    analyses: tuple[str, ...] = ()

    @property
    def is_japanese(self) -> bool:
        return self.language is Language.JAPANESE

    @property
    def has_custom_prompt(self) -> bool:
        return self.custom_prompt is not None and bool(self.custom_prompt.strip())

    @property
    def spans_multiple_photos(self) -> bool:
        return len(self.photo_times) > 1


Section = Callable[[PromptParams], "str | None"]


def _format_markers(params: PromptParams) -> str:
    title, body = TITLE_MARKERS[params.language], BODY_MARKERS[params.language]
    return f"{title}\n…\n\n{body}\n…"


# =============================================================================
# Sections
# =============================================================================


def single_header_section(params: PromptParams) -> str:
    if params.is_japanese:
        return (
            "あなたは感情豊かな日記作成の専門家です。提示されたシーンや場面をもとに、"
            "その瞬間の感情や心の動きを中心とした日記を日本語で作成してください。\n"
            "写真は単なる記録ではなく、あなたが実際に体験したシーンを表しています。"
            "そのシーンで感じた気持ちや感情を深く掘り下げた個人的な日記を書いてください。\n\n"
            "タイトルと本文を分けて、以下の形式で出力してください。\n\n" + _format_markers(params)
        )
    return (
        "You are an empathetic journaling companion. Using the scene details, craft a "
        "reflective diary entry in natural English that centres on the writer's emotions.\n"
        "The photo represents a real lived experience. Explore the personal meaning behind it.\n\n"
        "Write the output using the following format. Do not include any explanatory "
        "text in parentheses:\n\n" + _format_markers(params)
    )


def multi_header_section(params: PromptParams) -> str:
    if params.is_japanese:
        return (
            "以下のシーン分析結果から、その日の感情や心の動きを中心とした日記を日本語で作成してください。\n"
            "単なる出来事の記録ではなく、一日を通して体験したシーンで感じた気持ちや"
            "感情の変化を深く掘り下げた個人的な日記を書いてください。\n\n"
            "タイトルと本文を分けて、以下の形式で出力してください。\n\n" + _format_markers(params)
        )
    return (
        "Using the scene analyses below, craft a reflective diary entry in natural English "
        "that traces how the writer's emotions evolved throughout the day.\n"
        "Do not simply list events. Explore the inner experience and personal meaning "
        "behind each moment.\n\n"
        "Write the output using the following format. Do not include any explanatory "
        "text in parentheses:\n\n" + _format_markers(params)
    )


def location_section(params: PromptParams) -> str | None:
    return locale_utils.location_line(params.location, params.language).strip() or None


def context_section(params: PromptParams) -> str | None:
    if params.context_text is None or not params.context_text.strip():
        return None
    text = params.context_text.strip()
    if params.is_japanese:
        return f"状況・背景（書き手からのメモ）:\n{text}\nこの状況や背景を踏まえて日記を書いてください。"
    return f"Context:\n{text}\nTake this background into account when writing the diary."


def scene_analyses_section(params: PromptParams) -> str | None:
    if not params.analyses:
        return None
    primary = params.photo_times[0] if params.photo_times else datetime.now()
    span = time_of_day_for_photos(primary, params.photo_times, params.language)
    date_label = locale_utils.format_date(primary, params.language)
    numbered = "\n".join(f"{i}. {text}" for i, text in enumerate(params.analyses, start=1))
    if params.is_japanese:
        return f"日付: {date_label}\n時間帯: {span}\n\nシーン分析結果:\n{numbered}"
    return f"Date: {date_label}\nTime span: {span}\n\nScene analyses:\n{numbered}"


def time_segment_section(params: PromptParams) -> str | None:
    if not params.photo_times:
        return None
    phrase = time_of_day_for_photos(params.photo_times[0], params.photo_times, params.language)
    if params.is_japanese:
        return f"時間帯: {phrase}"
    return f"Time of day: {phrase}"


def custom_prompt_section(params: PromptParams) -> str | None:
    if not params.has_custom_prompt:
        return None
    quoted = params.custom_prompt.strip()  # type: ignore[union-attr]
    if params.is_japanese:
        return (
            "以下のライティングプロンプトを参考にして、このシーンで体験したことを深く掘り下げて"
            f"日記を作成してください：\n\n「{quoted}」\n\n"
            "このプロンプトの内容を日記に自然に織り込み、以下の観点で表現してください：\n"
            "- そのシーンで最初に感じた気持ちや感情\n"
            "- なぜその感情が生まれたのかの理由や背景\n"
            "- その瞬間に感じた心の動きや印象\n"
            "- その時間から得られた気づきや発見"
        )
    return (
        f'Use the following writing prompt as additional inspiration:\n\n"{quoted}"\n\n'
        "Weave the prompt naturally into the diary and reflect on:\n"
        "- The first emotions that surfaced in the scene\n"
        "- Why those feelings emerged and any background context\n"
        "- How the inner state shifted moment by moment\n"
        "- Insights or lessons gained from the experience"
    )


def _length_section(params: PromptParams, ranges: dict[Language, dict[DiaryLength, LengthRange]]) -> str:
    length = ranges[params.language][params.diary_length]
    (title_lo, title_hi), (body_lo, body_hi) = length.title, length.body
    if params.is_japanese:
        hint = "。時系列に沿って感情の変化を描写してください" if params.spans_multiple_photos else ""
        return (
            "出力の長さ:\n"
            f"- タイトル: {title_lo}-{title_hi}文字程度で感情や印象を表現する簡潔なタイトル\n"
            f"- 本文: {body_lo}-{body_hi}文字程度で、感情や心の動きを中心とした自然で個人的な文体{hint}"
        )
    hint = " and traces how the feelings shift across the moments" if params.spans_multiple_photos else ""
    return (
        "Length:\n"
        f"- Title: a concise {title_lo}-{title_hi} word phrase capturing the emotional tone\n"
        f"- Body: approximately {body_lo}-{body_hi} words in a warm, personal voice "
        f"that explores the emotions{hint}"
    )


def single_length_section(params: PromptParams) -> str:
    return _length_section(params, SINGLE_LENGTHS)


def multi_length_section(params: PromptParams) -> str:
    return _length_section(params, MULTI_LENGTHS)


def emphasis_section(params: PromptParams) -> str:
    if params.is_japanese:
        guidance = ""
        if not params.has_custom_prompt:
            guidance = (
                "以下の点を意識して日記を書いてください：\n"
                "- そのシーンで実際に感じた気持ちや感情\n"
                "- その瞬間の心の状態や雰囲気\n"
                "- 自分にとって意味のある瞬間や気づき\n\n"
            )
        return f"{guidance}{params.emphasis}、個人的で心に響く日記を作成してください。"
    guidance = ""
    if not params.has_custom_prompt:
        guidance = (
            "Consider the moment carefully and describe:\n"
            "- The emotions you genuinely felt\n"
            "- The atmosphere and sensory details you noticed\n"
            "- A personal insight or takeaway from the experience\n\n"
        )
    return (
        f"{guidance}Use a tone that {params.emphasis} and keep the diary personal and "
        "heartfelt. Do not include parenthetical explanations or meta-commentary in the "
        "title or body."
    )


SINGLE_IMAGE_SECTIONS: tuple[Section, ...] = (
    single_header_section,
    location_section,
    context_section,
    time_segment_section,
    custom_prompt_section,
    single_length_section,
    emphasis_section,
)

MULTI_IMAGE_SECTIONS: tuple[Section, ...] = (
    multi_header_section,
    location_section,
    context_section,
    scene_analyses_section,
    custom_prompt_section,
    multi_length_section,
    emphasis_section,
)


def assemble(sections: Sequence[Section], params: PromptParams) -> str:
    """Render each section and join the non-empty ones with blank lines."""
    rendered = (section(params) for section in sections)
    return "\n\n".join(text.strip() for text in rendered if text and text.strip())


# =============================================================================
# Builders
# =============================================================================


def build_single_image_prompt(params: PromptParams) -> str:
    return assemble(SINGLE_IMAGE_SECTIONS, params)


def build_multi_image_prompt(params: PromptParams) -> str:
    return assemble(MULTI_IMAGE_SECTIONS, params)


def build_scene_analysis_prompt(
    timestamp: datetime,
    location: str | None,
    language: Language,
) -> str:
    """Ask for a short, factual description of one photo."""
    time_label = locale_utils.format_time(timestamp, language)
    segment = label_for(segment_for(timestamp.hour), language)
    location_text = locale_utils.location_line(location, language)
    if language is Language.JAPANESE:
        return (
            "この写真の内容を詳しく分析して、簡潔に説明してください。\n"
            "以下の形式で回答してください：\n\n"
            "この写真には[主な被写体・物・場面]が写っています。[具体的な詳細や特徴、雰囲気など50文字程度で]\n\n"
            f"時刻: {time_label}({segment})\n"
            f"{location_text}\n"
            "写真の詳細を観察して、その時の状況や雰囲気を含めて分析してください。"
        )
    return (
        "Analyse this photo in detail and describe it briefly.\n"
        "Answer in the following form:\n\n"
        "This photo shows [main subject, objects or scene]. [Specific details, features "
        "and atmosphere in about 30 words]\n\n"
        f"Time: {time_label} ({segment})\n"
        f"{location_text}\n"
        "Observe the details and include the situation and mood of the moment."
    )


def build_tag_prompt(
    title: str,
    content: str,
    timestamp: datetime,
    photo_count: int,
    time_label: str,
    language: Language,
) -> str:
    """Ask for 3-5 comma-separated tags describing a diary entry."""
    if language is Language.JAPANESE:
        return (
            "以下の日記の内容から、適切なタグを3-5個生成してください。\n"
            "タグは日記の内容を表現する短い単語（1-3文字程度）で、カテゴリ分けに役立つものにしてください。\n\n"
            f"日付: {locale_utils.format_date(timestamp, language)}\n"
            f"時間帯: {time_label}\n"
            f"写真枚数: {photo_count}枚\n\n"
            f"タイトル: {title}\n"
            f"本文: {content}\n\n"
            "以下の形式で出力してください（タグ名のみをカンマ区切りで）：\n"
            "朝食,散歩,リラックス\n\n"
            "注意事項：\n"
            "- 日本語の短い単語でお願いします\n"
            "- 食事、活動、場所、感情、時間などの観点から選んでください\n"
            "- 「#」記号は不要です\n"
            "- 最大5個まで"
        )
    return (
        "Generate 3-5 appropriate tags from the following diary content.\n"
        "Tags should be short words (1-3 words) that express the content and are useful "
        "for categorization.\n\n"
        f"Date: {timestamp:%Y-%m-%d}\n"
        f"Time of day: {time_label}\n"
        f"Number of photos: {photo_count}\n\n"
        f"Title: {title}\n"
        f"Content: {content}\n\n"
        "Please output in the following format (tag names only, comma-separated):\n"
        "Breakfast,Walk,Relax\n\n"
        "Notes:\n"
        "- Please use short English words\n"
        "- Choose from perspectives like meals, activities, places, emotions, time, etc.\n"
        '- No "#" symbol needed\n'
        "- Maximum 5 tags"
    )
