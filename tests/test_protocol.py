import unittest

from chatter_server.protocol import (
    Command, ProtocolError, parse_line, parse_whisper, validate_username,
    format_message, format_whisper, format_online, format_offline,
)


class TestParseLine(unittest.TestCase):

    def test_splits_on_first_space_only(self):
        command, body = parse_line("msg hello there  world")
        self.assertIs(command, Command.MSG)
        self.assertEqual(body, "hello there  world")

    def test_strips_line_terminators(self):
        self.assertEqual(parse_line("login alice\r\n"), (Command.LOGIN, "alice"))
        self.assertEqual(parse_line("login alice\n"), (Command.LOGIN, "alice"))

    def test_line_without_separator_is_malformed(self):
        with self.assertRaises(ProtocolError):
            parse_line("logout")
        with self.assertRaises(ProtocolError):
            parse_line("")

    def test_unknown_verbs_are_invalid(self):
        self.assertIs(parse_line("users all")[0], Command.INVALID)
        self.assertIs(parse_line("LOGIN alice")[0], Command.INVALID)
        self.assertIs(parse_line(" leading")[0], Command.INVALID)

    def test_hash_delimited_form_is_not_recognised(self):
        with self.assertRaises(ProtocolError):
            parse_line("login#alice")

    def test_empty_body_is_kept(self):
        self.assertEqual(parse_line("login "), (Command.LOGIN, ""))


class TestParseWhisper(unittest.TestCase):

    def test_target_and_text(self):
        self.assertEqual(parse_whisper("bob hi there"), ("bob", "hi there"))

    def test_missing_text_is_malformed(self):
        with self.assertRaises(ProtocolError):
            parse_whisper("bob")


class TestValidateUsername(unittest.TestCase):

    def test_accepts_plain_names(self):
        for name in ("alice", "Bob_2", "émile"):
            self.assertTrue(validate_username(name), name)

    def test_rejects_bad_names(self):
        for name in ("", "two words", "tab\tname", "login", "logout", "msg", "whsp"):
            self.assertFalse(validate_username(name), name)


class TestFormatting(unittest.TestCase):

    def test_server_lines(self):
        self.assertEqual(format_message("bob", "hello"), "msg bob : hello")
        self.assertEqual(format_whisper("alice", "hi"), "whsp alice : hi")
        self.assertEqual(format_online("carol"), "online carol")
        self.assertEqual(format_offline("carol"), "offline carol")


if __name__ == "__main__":
    unittest.main()
