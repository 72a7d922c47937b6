# Stateful services wrapping the escalation core
