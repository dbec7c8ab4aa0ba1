from datetime import timedelta


def human_offset(value):
    if value is None:
        return '—'
    if isinstance(value, timedelta):
        value = value.total_seconds()
    if value < 0:
        return '—'
    m, s = divmod(int(value), 60)
    h, m = divmod(m, 60)
    if h > 0: return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def strip_colors(s):
    # ^X = code couleur (2 caractères) ; un '^' final isolé est retiré aussi
    if not s:
        return ''
    out = []
    i, n = 0, len(s)
    while i < n:
        if s[i] == '^':
            i += 2
            continue
        out.append(s[i])
        i += 1
    return ''.join(out)
