"""
Bundled KB articles loaded by the seeding step.

Ids are derived from a fixed slug so that seeding twice updates the same
rows instead of duplicating them.
"""

from typing import List, Optional
from uuid import NAMESPACE_URL, uuid5

from helpdesk.config import ArticleType
from helpdesk.knowledge.domain import KBArticle


def article_id(slug: str) -> str:
    return str(uuid5(NAMESPACE_URL, f"helpdesk/kb/{slug}"))


VPN_PASSWORD_RESET_RU = """# Сброс пароля VPN

Если вы забыли пароль для VPN, выполните следующие шаги:

1. Перейдите на портал самообслуживания: https://selfservice.company.com
2. Выберите раздел "VPN доступ"
3. Нажмите "Сбросить пароль"
4. Введите ваш корпоративный email
5. Проверьте почту и следуйте инструкциям в письме

Новый пароль будет действителен сразу после сброса.

**Важно:** Пароль должен содержать минимум 8 символов, включая цифры и специальные символы."""

VPN_PASSWORD_RESET_KZ = """# VPN құпиясөзін қалпына келтіру

VPN құпиясөзін ұмытып қалсаңыз, келесі қадамдарды орындаңыз:

1. Өзіне-өзі қызмет көрсету порталына өтіңіз: https://selfservice.company.com
2. "VPN қол жетімділігі" бөлімін таңдаңыз
3. "Құпиясөзді қалпына келтіру" түймесін басыңыз
4. Корпоративтік email-іңізді енгізіңіз
5. Поштаңызды тексеріңіз және хаттағы нұсқауларды орындаңыз

Жаңа құпиясөз қалпына келтірілгеннен кейін бірден жарамды болады."""

VPN_ERROR_RU = """# Ошибка подключения к VPN

Ошибка 789 обычно связана с настройками сертификата или устаревшим паролем.

1. Перезагрузите компьютер и повторите подключение
2. Проверьте, что пароль VPN не истёк
3. Если пароль истёк, сбросьте его на портале самообслуживания: https://selfservice.company.com"""

VPN_ERROR_EN = """# VPN connection error

Error 789 is usually caused by certificate settings or an expired password.

1. Restart the computer and reconnect
2. Check that your VPN password has not expired
3. If it has, reset it on the self-service portal: https://selfservice.company.com"""

MOBILE_MAIL_RU = """# Настройка почты на мобильном устройстве

## Для iPhone/iPad:
1. Откройте Настройки → Почта → Учетные записи
2. Нажмите "Добавить учетную запись" → Exchange
3. Введите ваш email и пароль
4. Сервер: mail.company.com

## Для Android:
1. Откройте приложение Gmail или Почта
2. Добавьте учетную запись → Exchange
3. Введите email: ваш_логин@company.com
4. Пароль: ваш корпоративный пароль
5. Сервер: mail.company.com

**Если возникли проблемы**, проверьте:
- Активен ли ваш аккаунт
- Правильно ли введен пароль
- Есть ли подключение к интернету"""

PRINTER_RU = """# Подключение сетевого принтера

## Автоматическая установка:
1. Откройте \\\\print.company.com в проводнике
2. Найдите нужный принтер (по этажу/кабинету)
3. Дважды щелкните для установки

## Ручная установка:
1. Панель управления → Устройства и принтеры
2. Добавить принтер → Сетевой принтер
3. Введите адрес: \\\\print.company.com\\ИМЯ_ПРИНТЕРА"""

WIFI_RU = """# Wi-Fi в офисе

## Сети:
- **CORP-WIFI** — для корпоративных устройств (авто-подключение)
- **GUEST-WIFI** — для гостей и личных устройств

**Не подключается к CORP-WIFI:**
1. Убедитесь, что устройство в домене
2. Перезагрузите устройство
3. Проверьте сертификаты (Пуск → certmgr.msc)

**Медленный интернет:**
1. Проверьте, к какой сети подключены
2. Попробуйте переподключиться
3. Отойдите ближе к точке доступа"""

PASSWORD_POLICY_DRAFT_RU = """# Политика паролей

Черновик: требования к сложности и сроку действия корпоративных паролей."""


def seed_articles(owner_id: Optional[str] = None) -> List[KBArticle]:
    """Articles shipped with the service."""
    return [
        KBArticle(
            id=article_id("vpn-password-reset"),
            category="access_vpn",
            type=ArticleType.GUIDE,
            titles={"ru": "Как сбросить пароль VPN", "kz": "VPN құпиясөзін қалпына келтіру"},
            bodies={"ru": VPN_PASSWORD_RESET_RU, "kz": VPN_PASSWORD_RESET_KZ},
            keywords={"vpn", "пароль", "сброс", "доступ", "құпиясөз", "қалпына келтіру"},
            owner_id=owner_id,
        ),
        KBArticle(
            id=article_id("vpn-error-789"),
            category="access_vpn",
            type=ArticleType.FAQ,
            titles={"ru": "Ошибка 789 при подключении к VPN", "en": "VPN error 789"},
            bodies={"ru": VPN_ERROR_RU, "en": VPN_ERROR_EN},
            keywords={"vpn", "ошибка", "ошибку", "сертификат", "подключение", "подключении"},
            owner_id=owner_id,
        ),
        KBArticle(
            id=article_id("mobile-mail-setup"),
            category="email",
            type=ArticleType.GUIDE,
            titles={"ru": "Настройка корпоративной почты на телефоне"},
            bodies={"ru": MOBILE_MAIL_RU},
            keywords={"почта", "email", "настройка", "телефон", "мобильный", "пароль"},
            owner_id=owner_id,
        ),
        KBArticle(
            id=article_id("printer-install"),
            category="hardware",
            type=ArticleType.GUIDE,
            titles={"ru": "Установка принтера"},
            bodies={"ru": PRINTER_RU},
            keywords={"принтер", "установка", "печать"},
            owner_id=owner_id,
        ),
        KBArticle(
            id=article_id("office-wifi-faq"),
            category="network",
            type=ArticleType.FAQ,
            titles={"ru": "Часто задаваемые вопросы по Wi-Fi"},
            bodies={"ru": WIFI_RU},
            keywords={"wifi", "сеть", "интернет", "подключение"},
            owner_id=owner_id,
        ),
        KBArticle(
            id=article_id("password-policy-draft"),
            category="access_vpn",
            type=ArticleType.POLICY,
            titles={"ru": "Политика паролей"},
            bodies={"ru": PASSWORD_POLICY_DRAFT_RU},
            keywords={"пароль", "vpn", "политика"},
            is_published=False,
            owner_id=owner_id,
        ),
    ]
