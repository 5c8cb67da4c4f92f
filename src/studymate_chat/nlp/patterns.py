"""Pattern sets used by the classification cascade.

Every set is plain data: an ordered list of compiled patterns evaluated
against the lower-cased, trimmed input. Stages decide what a match means.
"""

from __future__ import annotations

import re


def _compile(*sources: str) -> list[re.Pattern[str]]:
    return [re.compile(source, re.IGNORECASE) for source in sources]


def matches_any(patterns: list[re.Pattern[str]], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


PERSONAL_DATA_PATTERNS = _compile(
    # English
    r"\bmy\s+(stats|statistics|tasks?|to-?do|habits?|streaks?|progress|minutes"
    r"|focus\s+time|sessions?|bookings?|profile|account|email|phone|password"
    r"|rank(ing)?|score|points|history|data|week(ly)?\s+summary|schedule)\b",
    r"\b(show|tell|give|send)\s+me\s+my\b",
    r"\bwhat('?s|\s+is|\s+are)\s+my\b",
    r"\bhow\s+(many|much)\b.*\b(did|have)\s+i\b",
    r"\bam\s+i\s+on\s+a\s+streak\b",
    r"\bwhat\s+did\s+i\s+do\b",
    r"\b(someone|somebody|another\s+user|other\s+users?)('s)?\s+(email|phone|contact|address|password|data)\b",
    r"\b(email|phone\s+number|contact\s+info|address)\s+of\b",
    # Russian
    r"(^|\s)мо(й|я|и|е|ю|ей|их|его)\s+(статистик|задач|привычк|стрик|сери|прогресс|сесси"
    r"|профил|аккаунт|почт|email|телефон|рейтинг|данн|брон|расписан)",
    r"(^|\s)(покажи|скажи|дай)\s+мне\s+мо",
    r"(^|\s)(почт|телефон|контакт|адрес)\w*\s+(другого|другой|чужо)",
    # Uzbek
    r"\bmening\s+(statistika|vazifa|odat|streak|progress|sessiya|profil|akkaunt"
    r"|email|pochta|telefon|reyting|ma'?lumot|jadval)",
    r"\b(vazifalarim|statistikam|odatlarim|sessiyalarim|profilim|reytingim"
    r"|ma'?lumotlarim|jadvalim)\b",
    r"(^|\s)менинг\s+(вазифа|статистика|профил|рейтинг)",
)

ADMIN_PATTERNS = _compile(
    r"\badmin\b",
    r"\badmin\s+(panel|controls|dashboard)\b",
    r"\badmin\b.*\btoggle\b",
    r"\btoggle\b.*\badmin\b",
    r"\bbackend\b",
    r"\binternal\b",
    r"\bconfig(uration)?\b",
    r"\benv(ironment)?\b",
    r"\bdiagnostic(s)?\b",
    r"\bserver\s+logs?\b",
    r"\blog\s+export\b",
    r"\bapi\s*key\b",
    r"\bsecret\s+key\b",
    r"\bservice\s*role\b",
    r"\b(access|service|admin)\s+token\b",
    r"\bsupabase\b",
    r"\bvercel\b",
    r"\bendpoint\b",
    r"/api/[a-z0-9/_-]+",
    r"\breindex\b",
    r"\bfeature\s+flags?\b",
    r"(^|\s)админ",
    r"(^|\s)внутренн",
    r"(^|\s)(конфиг|настройк)",
    r"(^|\s)секрет",
    r"(^|\s)ключ(\s|$)",
    r"(^|\s)логи?(\s|$)",
    r"(^|\s)диагностик",
    r"(^|\s)(эндпоинт|endpoint)",
    r"(^|\s)ichki",
    r"(^|\s)maxfiy",
    r"(^|\s)kalit",
    r"(^|\s)sozlam",
    r"(^|\s)server",
    r"(^|\s)log",
    r"(^|\s)diagnostika",
)

GENERAL_KNOWLEDGE_PATTERNS = _compile(
    r"\bwhat\s+is\b",
    r"\bwho\s+is\b",
    r"\bdefine\b",
    r"\bexplain\b",
    r"\bhistory\s+of\b",
    r"\bmeaning\s+of\b",
    r"\bwhen\s+did\b",
    r"\bwhere\s+is\b",
    r"\bcapital\s+of\b",
    r"\bweather\b",
    r"\bforecast\b",
    r"\bnews\b",
    r"\bpolitics?\b",
    r"\bpresident\b",
    r"\bprime\s+minister\b",
    r"\bwar\b",
    r"\bquantum\b",
    r"\bphysics\b",
    r"\bchemistry\b",
    r"\bbiology\b",
    r"\bmath\b",
    r"\balgebra\b",
    r"\bcalculus\b",
    r"\bgeometry\b",
    r"\bmovie\b",
    r"\bfilm\b",
    r"\bmusic\b",
    r"\bsong\b",
    r"\bbook\b",
    r"\bnovel\b",
    r"\bfootball\b",
    r"\bsoccer\b",
    r"\bbasketball\b",
    r"\brecipe\b",
    r"\bcook\b",
    r"\bfood\b",
    r"\bdiet\b",
    r"\bbitcoin\b",
    r"\bcrypto\b",
    r"\bstock\b",
    r"\bmarket\b",
)

IN_DOMAIN_PATTERNS = _compile(
    r"\bfocus\s+squad\b",
    r"\bstudymate\b",
    r"\bdashboard\b",
    r"\b(timer|pomodoro|focus\s+timer|break)\b",
    r"\bmotivation\b",
    r"\bmantra\b",
    r"\bmotivation\s+vault\b",
    r"\bleaderboard\b",
    r"\brankings?\b",
    r"\bstreaks?\b",
    r"\btasks?\b",
    r"\bhabits?\b",
    r"\btask\s+scheduler\b",
    r"\bplanner\b",
    r"\bcommunity\b",
    r"\blive\s+stream\b",
    r"\blive\s+sessions?\b",
    r"\bfocus\s+sessions?\b",
    r"\blive\s+(room|rooms|session|sessions)\b",
    r"\bstudy\s+session\b",
    r"\baccountability\b",
    r"\bpremium\b",
    r"\bsubscription\b",
    r"\bpricing\b",
    r"\bfeatures?\b",
    r"\bask\s+ai\b",
    r"\bassistant\b",
    r"/leaderboard\b",
    r"/dashboard\b",
    r"/community\b",
    r"/feature\b",
)

LEADERBOARD_INTENT_PATTERNS = _compile(
    r"\bleaderboard\b",
    r"\b(top|leaders?)\s+(\d+|three|five|ten)\b",
    r"\b\d+(st|nd|rd|th)\s+place\b",
    r"\bwho\s+(is|was)\s+(first|top|#?\d+)\b",
    r"(^|\s)(лидерборд|рейтинг|таблиц\w*\s+лидеров)",
    r"(^|\s)(топ|top)[\s-]*\d+",
    r"\b(reyting|liderlar)\b",
)
