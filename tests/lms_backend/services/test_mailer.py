from lms_backend.services import mailer as mailer_module
from lms_backend.services.mailer import LogOnlyResetMailer, SmtpResetMailer, build_reset_message, get_reset_mailer


class _FakeSmtp:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.logged_in = None
        self.messages = []
        _FakeSmtp.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def login(self, username, password):
        self.logged_in = (username, password)

    def send_message(self, message):
        self.messages.append(message)


def test_build_reset_message_contains_link() -> None:
    message = build_reset_message('lms@example.com', 'a@x.com', 'Alice', 'http://app/reset-password/abc')

    assert message['To'] == 'a@x.com'
    assert message['From'] == 'lms@example.com'
    assert 'http://app/reset-password/abc' in message.get_content()


def test_smtp_mailer_sends_over_ssl(monkeypatch) -> None:
    _FakeSmtp.instances.clear()
    monkeypatch.setattr(mailer_module.smtplib, 'SMTP_SSL', _FakeSmtp)
    mailer = SmtpResetMailer(host='smtp.example.com', port=465, username='bot', password='pw', sender='bot@example.com')

    mailer.send_reset_link('a@x.com', 'Alice', 'http://app/reset-password/abc')

    server = _FakeSmtp.instances[-1]
    assert server.host == 'smtp.example.com'
    assert server.logged_in == ('bot', 'pw')
    assert server.messages[0]['To'] == 'a@x.com'


def test_get_reset_mailer_falls_back_to_logging(monkeypatch) -> None:
    monkeypatch.setattr(mailer_module.config, 'SMTP_HOST', '')

    assert isinstance(get_reset_mailer(), LogOnlyResetMailer)
