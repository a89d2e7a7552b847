# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later


class KeyProbeError(Exception):
    pass


class ConfigOutOfRange(KeyProbeError):
    def __init__(self, field: str, value, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{field}={value!r}: {reason}")


class UnknownAnalyzer(KeyProbeError, LookupError):
    pass


class SessionClosed(KeyProbeError):
    def __init__(self):
        return super().__init__("Session is closed")
