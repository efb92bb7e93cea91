import pytest

from pasvftp import Category, Endpoint, ProtocolFailure, Reply, ReplyParser


@pytest.fixture
def parser() -> ReplyParser:
    return ReplyParser()


class TestParseCode:
    @pytest.mark.parametrize(
        "text, category",
        [
            ("150 Here comes the directory listing.\r\n", Category.PRELIMINARY),
            ("230 Login successful\r\n", Category.COMPLETE),
            ("331 Please specify the password.\r\n", Category.INTERMEDIATE),
            ("425 Can't open data connection.\r\n", Category.TRANSIENT_NEGATIVE),
            ("530 Not logged in\r\n", Category.PERMANENT_NEGATIVE),
        ],
    )
    def test_category_is_leading_digit(self, parser, text, category):
        assert parser.parse_code(text) is category

    @pytest.mark.parametrize("text", ["", "2", "23", "abc hello", "2x0 nope", " 230 leading space"])
    def test_malformed_text_is_a_protocol_failure(self, parser, text):
        with pytest.raises(ProtocolFailure):
            parser.parse_code(text)

    @pytest.mark.parametrize("text", ["000 zero\r\n", "099 low\r\n", "600 high\r\n"])
    def test_code_outside_reply_range_is_rejected(self, parser, text):
        with pytest.raises(ProtocolFailure):
            parser.parse_code(text)


class TestParse:
    def test_keeps_raw_text(self, parser):
        text = "230-Welcome\r\n230 Login successful.\r\n"
        reply = parser.parse(text)
        assert reply == Reply(230, Category.COMPLETE, text)
        assert reply.lines == ["230-Welcome", "230 Login successful."]
        assert reply.message == "Login successful."
        assert reply.meaning == "User logged in, proceed"

    def test_flags(self, parser):
        assert parser.parse("150 ok\r\n").preliminary
        assert parser.parse("226 done\r\n").complete
        assert parser.parse("331 password\r\n").intermediate
        assert parser.parse("450 busy\r\n").negative
        assert parser.parse("550 missing\r\n").negative
        assert not parser.parse("250 fine\r\n").negative

    def test_unknown_code_has_no_meaning(self, parser):
        assert parser.parse("299 custom\r\n").meaning is None


class TestParsePassive:
    def test_documented_example(self, parser):
        endpoint = parser.parse_passive("227 Entering Passive Mode (192,168,0,5,117,80)\r\n")
        assert endpoint == Endpoint("192.168.0.5", 30032)

    @pytest.mark.parametrize(
        "numbers",
        [(127, 0, 0, 1, 0, 1), (10, 1, 2, 3, 4, 0), (255, 255, 255, 255, 255, 255), (0, 0, 0, 0, 200, 17)],
    )
    def test_address_and_port(self, parser, numbers):
        h1, h2, h3, h4, p1, p2 = numbers
        text = f"227 Entering Passive Mode ({h1},{h2},{h3},{h4},{p1},{p2}).\r\n"
        endpoint = parser.parse_passive(text)
        assert endpoint.host == f"{h1}.{h2}.{h3}.{h4}"
        assert endpoint.port == p1 * 256 + p2

    def test_tuple_on_a_continuation_line(self, parser):
        text = "227-listen socket created\r\n227 (127,0,0,1,39,16)\r\n"
        assert parser.parse_passive(text) == Endpoint("127.0.0.1", 10000)

    def test_tolerates_spaces_between_fields(self, parser):
        assert parser.parse_passive("227 ok (10, 0, 0, 7, 4, 1)\r\n") == Endpoint("10.0.0.7", 1025)

    @pytest.mark.parametrize("text", ["425 Can't open data connection.\r\n", "530 Please login.\r\n"])
    def test_non_complete_reply_has_no_endpoint(self, parser, text):
        assert parser.parse_passive(text) is None

    @pytest.mark.parametrize(
        "text",
        [
            "227 Entering Passive Mode\r\n",
            "227 Entering Passive Mode (1,2,3)\r\n",
            "227 Entering Passive Mode (a,b,c,d,e,f)\r\n",
            "227 Entering Passive Mode (1,2,3,4,256,0)\r\n",
            "227 Entering Passive Mode (1,2,3,4,0,0)\r\n",
        ],
    )
    def test_malformed_tuple_is_a_protocol_failure(self, parser, text):
        with pytest.raises(ProtocolFailure):
            parser.parse_passive(text)


class TestEndpoint:
    def test_rejects_port_zero(self):
        with pytest.raises(ValueError):
            Endpoint("127.0.0.1", 0)

    def test_str(self):
        assert str(Endpoint("127.0.0.1", 2121)) == "127.0.0.1:2121"
