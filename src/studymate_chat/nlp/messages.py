"""Localized scripted replies."""

from __future__ import annotations

from studymate_chat.nlp.greetings import greeting_reply
from studymate_chat.types import Classification, ClassificationOutcome

OFF_TOPIC = {
    "en": "I can only answer questions about StudyMate and its features. Try asking about the dashboard, timer, leaderboard, or how to use a feature.",
    "ru": "Я отвечаю только на вопросы о StudyMate и его функциях. Спроси про дашборд, таймер, лидерборд или как пользоваться функцией.",
    "uz": "Men faqat StudyMate va uning imkoniyatlari haqidagi savollarga javob beraman. Dashboard, taymer yoki reyting haqida so'rang.",
}

MODERATION = {
    "en": "I want to keep things positive and on-topic, so let's stick to questions about this site.",
    "ru": "Поддерживаю только спокойные и безопасные темы. Давай обсудим что-нибудь по сайту.",
    "uz": "Hammasi xavfsiz qolishi uchun, iltimos, shu saytga oid mavzular bilan davom etamiz.",
}

ERROR = {
    "en": "Uh oh, something glitchy happened. Ask me again in a moment and I'll be ready!",
    "ru": "Поймал глюк. Спроси ещё раз через минутку — я снова буду в строю!",
    "uz": "Afsuski, kichik nosozlik yuz berdi. Birozdan so'ng yana so'rab ko'ring!",
}

PERSONAL_DATA = {
    "en": "I can't access personal data (your stats/tasks/habits). I can help explain features or public info like the leaderboard.",
    "ru": "У меня нет доступа к личным данным (статистика, задачи, привычки). Могу объяснить функции или показать публичный лидерборд.",
    "uz": "Shaxsiy ma'lumotlarga (statistika, vazifalar, odatlar) kira olmayman. Funksiyalarni yoki ommaviy reytingni tushuntira olaman.",
}

ADMIN_REFUSAL = {
    "en": "I can't access admin-only or internal system info.",
    "ru": "У меня нет доступа к административной или внутренней информации.",
    "uz": "Men admin yoki ichki tizim ma'lumotlariga kira olmayman.",
}

SIGN_IN_REQUIRED = {
    "en": "Please sign in to see your personal StudyMate info.",
    "ru": "Войдите в аккаунт, чтобы увидеть личные данные StudyMate.",
    "uz": "Shaxsiy StudyMate ma'lumotlari uchun tizimga kiring.",
}

NOT_INDEXED = {
    "en": "I couldn't find that in the StudyMate help pages yet. Try rephrasing, or ask about a specific feature.",
    "ru": "Пока не нашёл этого в справке StudyMate. Попробуй переформулировать или спроси про конкретную функцию.",
    "uz": "Bu haqda StudyMate yordam sahifalarida hali ma'lumot topmadim. Savolni boshqacha bering yoki aniq funksiya haqida so'rang.",
}

PAUSED = {
    "en": "The assistant is taking a quick break while admins make updates. Check back soon ✨",
    "ru": "Ассистент временно на паузе — админы скоро вернут его в строй ✨",
    "uz": "AI hozirda dam olmoqda — administratorlar uni yaqinda qayta ishga tushiradilar ✨",
}

LEADERBOARD_MISSING_DATE = {
    "en": "I can check a leaderboard snapshot if you share a date (YYYY-MM-DD).",
    "ru": "Я могу проверить лидерборд по дате (YYYY-MM-DD). Пришлите дату, и я посмотрю.",
    "uz": "Leaderboardni faqat sana bilan tekshira olaman (YYYY-MM-DD). Sanani yuborsangiz, tekshirib beraman.",
}

LEADERBOARD_MISSING_RANK = {
    "en": "Which rank or top list should I check (for example, 2nd place or top 10)?",
    "ru": "Какое место или топ проверить (например, 2-е место или топ 10)?",
    "uz": "Qaysi o'rin yoki top ro'yxatni tekshiray (masalan, 2-o'rin yoki top 10)?",
}

LEADERBOARD_NOT_FOUND = {
    "en": "I can't access that leaderboard snapshot yet. Open Leaderboard -> History and pick the date and scope.",
    "ru": "Этот снимок лидерборда пока недоступен. Открой Лидерборд -> История и выбери дату и период.",
    "uz": "Bu reyting hali mavjud emas. Leaderboard -> History bo'limida sana va davrni tanlang.",
}

LEADERBOARD_SCOPE_LABELS = {
    "en": {"day": "Daily", "week": "Weekly", "month": "Monthly"},
    "ru": {"day": "Ежедневный", "week": "Еженедельный", "month": "Ежемесячный"},
    "uz": {"day": "Kunlik", "week": "Haftalik", "month": "Oylik"},
}


def pick(source: dict[str, str], language: str) -> str:
    return source.get(language) or source["en"]


def leaderboard_scope_label(scope: str, language: str) -> str:
    labels = LEADERBOARD_SCOPE_LABELS.get(language, LEADERBOARD_SCOPE_LABELS["en"])
    return labels.get(scope, scope)


def scripted_reply(classification: Classification, language: str) -> str:
    """Map a terminal classification to its reply text."""

    outcome = classification.outcome
    if outcome is ClassificationOutcome.GREETING:
        return greeting_reply(classification.language or language)
    if outcome is ClassificationOutcome.MODERATION_BLOCKED:
        return pick(MODERATION, language)
    if outcome is ClassificationOutcome.REFUSAL_PERSONAL:
        if classification.reason == "personal_sign_in_required":
            return pick(SIGN_IN_REQUIRED, language)
        return pick(PERSONAL_DATA, language)
    if outcome is ClassificationOutcome.REFUSAL_ADMIN:
        return pick(ADMIN_REFUSAL, language)
    if outcome is ClassificationOutcome.OFF_TOPIC:
        return pick(OFF_TOPIC, language)
    raise ValueError(f"No scripted reply for outcome: {outcome.value}")
