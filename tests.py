import io
import threading
import unittest
import unittest.mock as mock
from unittest.mock import patch

import pytest

from homectl.cli import format_status, main
from homectl.color import (
    CMYK,
    HSV,
    RGB,
    ColorTemperature,
    NamedColor,
    format_color,
    parse_color,
    to_cmyk,
    to_hsv,
    to_rgb,
)
from homectl.commands import Command, CommandType, match_abbreviation, resolve
from homectl.const import (
    COLOR_MODE_CCT,
    COLOR_MODE_RGB,
    DISCOVERY_MESSAGE,
    DISCOVERY_PORT,
    LevelWriteMode,
)
from homectl.device import DeviceAddress, LedNetDevice
from homectl.dispatcher import CommandDispatcher, DeviceResult, execute
from homectl.exceptions import (
    AmbiguousAbbreviation,
    BadChecksum,
    DeviceUnreachable,
    ParseError,
    ProtocolError,
    Truncated,
    UnknownOpcode,
    UnknownToken,
    UnsupportedDevice,
    ValidationError,
)
from homectl.protocol import (
    LEDENET_LEVELS_LEN,
    LEDENET_POWER_LEN,
    LEDENET_STATE_QUERY_LEN,
    ProtocolLEDENET,
    checksum,
)
from homectl.scanner import DiscoveredDevice, LedNetScanner
from homectl.utils import (
    color_temp_to_white_levels,
    utils,
    white_levels_to_color_temp,
)

LEDENET_STATE_QUERY = b"\x81\x8a\x8b\x96"
LEDENET_POWER_ON = b"\x71\x23\x0f\xa3"
LEDENET_POWER_OFF = b"\x71\x24\x0f\xa4"
LEDENET_POWER_ON_ACK = b"\x0f\x71\x23\xa3"
LEDENET_POWER_OFF_ACK = b"\x0f\x71\x24\xa4"
# A controller showing warm white at 98%
LEDENET_STATE_WARM_WHITE = b"\x81\x25\x23\x61\x21\x06\x38\x05\x06\xf9\x01\x00\x0f\x9d"

SUPPORTED_REPLY = b"192.168.1.12,F0FE6B5A6D68,HF-LPB100-ZJ200"
UNSUPPORTED_REPLY = b"192.168.1.5,B4E842123245,AK001-ZJ2147"


def _state_frame(
    red=0, green=0, blue=0, warm_white=0, cool_white=0, power=0x23, color_mode=0xF0
):
    frame = bytearray(
        [
            0x81,
            0x25,
            power,
            0x61,
            0x21,
            0x01,
            red,
            green,
            blue,
            warm_white,
            0x01,
            cool_white,
            color_mode,
        ]
    )
    frame.append(checksum(frame))
    return frame


class LoopbackTransport:
    """Stands in for a controller, level writes show up in the next state."""

    def __init__(self):
        self.levels = [0, 0, 0, 0, 0]
        self.write_mode = 0xF0
        self.power = 0x23
        self.pending = bytearray()
        self.sent = []

    def send(self, msg):
        self.sent.append(bytes(msg))
        if msg[0] in (0x31, 0x41):
            mode = msg[6]
            if mode in (0xF0, 0x00):
                self.levels[0:3] = msg[1:4]
            if mode in (0x0F, 0x00):
                self.levels[3:5] = msg[4:6]
            self.write_mode = mode
        elif msg[0] == 0x71:
            self.power = msg[1]
            self.pending = bytearray([0x0F, 0x71, msg[1]])
            self.pending.append(checksum(self.pending))
        elif msg[0] == 0x81:
            red, green, blue, warm, cool = self.levels
            self.pending = _state_frame(
                red, green, blue, warm, cool, self.power, self.write_mode
            )

    def read(self, expected):
        return self.pending


class TestColor(unittest.TestCase):
    def test_parse_rgb(self):
        color = parse_color("rgb(255,135,30)")
        self.assertEqual(color, RGB(255, 135, 30))
        self.assertEqual(format_color(color), "rgb(255, 135, 30)")
        self.assertEqual(parse_color(" RGB( 255 , 135 , 30 ) "), RGB(255, 135, 30))

    def test_rgb_round_trip(self):
        for red in range(0, 256, 51):
            for green in range(0, 256, 51):
                for blue in (0, 1, 127, 254, 255):
                    text = format_color(RGB(red, green, blue))
                    assert to_rgb(parse_color(text)) == (red, green, blue)

    def test_parse_hex(self):
        assert parse_color("#ff871e") == RGB(255, 135, 30)
        assert parse_color("#FF871E") == RGB(255, 135, 30)
        assert parse_color("#fff") == RGB(255, 255, 255)

    def test_parse_named(self):
        color = parse_color("Orange")
        assert color == NamedColor("orange")
        assert to_rgb(color) == (255, 165, 0)
        assert format_color(color) == "orange"

    def test_parse_cmyk(self):
        color = parse_color("cmyk(0%, 47.1%, 88.2%, 0%)")
        assert color == CMYK(0, 47.1, 88.2, 0)
        assert to_rgb(color) == (255, 135, 30)
        assert format_color(color) == "cmyk(0%, 47.1%, 88.2%, 0%)"
        assert format_color(to_cmyk((255, 135, 30))) == "cmyk(0%, 47.1%, 88.2%, 0%)"

    def test_parse_hsv(self):
        color = parse_color("hsv(120, 100%, 100%)")
        assert color == HSV(120, 100, 100)
        assert to_rgb(color) == (0, 255, 0)
        assert format_color(to_hsv((255, 0, 0))) == "hsv(0, 100%, 100%)"
        assert to_rgb(parse_color("hsv(360,100%,100%)")) == (255, 0, 0)

    def test_parse_kelvin(self):
        assert parse_color("2700K") == ColorTemperature(2700)
        assert parse_color("2700k") == ColorTemperature(2700)
        assert parse_color("2700", temperature=True) == ColorTemperature(2700)
        assert format_color(ColorTemperature(2700)) == "2700K"
        with pytest.raises(ParseError):
            parse_color("2700")
        with pytest.raises(ParseError):
            parse_color("500K")
        with pytest.raises(ParseError):
            parse_color("50000K")

    def test_black_and_white(self):
        for text in ("black", "#000000", "rgb(0,0,0)", "cmyk(0,0,0,100)", "hsv(0,0,0)"):
            assert to_rgb(parse_color(text)) == (0, 0, 0), text
        for text in (
            "white",
            "#ffffff",
            "rgb(255,255,255)",
            "cmyk(0,0,0,0)",
            "hsv(0,0%,100%)",
        ):
            assert to_rgb(parse_color(text)) == (255, 255, 255), text
        assert format_color(to_cmyk((0, 0, 0))) == "cmyk(0%, 0%, 0%, 100%)"
        assert format_color(to_hsv((255, 255, 255))) == "hsv(0, 0%, 100%)"

    def test_kelvin_blue_rises_with_temperature(self):
        previous = to_rgb(ColorTemperature(1000))
        for kelvin in range(1100, 40001, 100):
            current = to_rgb(ColorTemperature(kelvin))
            assert current[2] >= previous[2], kelvin
            assert current[0] <= previous[0], kelvin
            previous = current
        assert to_rgb(ColorTemperature(1000))[2] == 0
        assert to_rgb(ColorTemperature(40000))[2] == 255

    def test_parse_errors(self):
        for text in (
            "",
            "notacolor",
            "rgb(256,0,0)",
            "rgb(1,2)",
            "rgb(1.5,2,3)",
            "rgb(a,b,c)",
            "cmyk(0,0,0,101)",
            "hsv(361,0,0)",
            "foo(1,2,3)",
            "#12",
            "#gggggg",
        ):
            with pytest.raises(ParseError):
                parse_color(text)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_color("notacolor")

    def test_non_ascii_digits(self):
        for text in ("²", "²k", "١٢٣", "rgb(²,0,0)", "hsv(0,0,²)"):
            with pytest.raises(ParseError):
                parse_color(text, temperature=True)

    def test_cmyk_and_hsv_round_trip(self):
        for red in range(0, 256, 51):
            for green in range(0, 256, 51):
                for blue in (0, 1, 127, 254, 255):
                    rgb = (red, green, blue)
                    assert to_rgb(to_cmyk(rgb)) == rgb
                    assert to_rgb(to_hsv(rgb)) == rgb

    def test_cmyk_and_hsv_text_round_trip(self):
        for red in range(0, 256, 51):
            for green in range(0, 256, 51):
                for blue in range(0, 256, 51):
                    rgb = (red, green, blue)
                    assert to_rgb(parse_color(format_color(to_cmyk(rgb)))) == rgb
                    assert to_rgb(parse_color(format_color(to_hsv(rgb)))) == rgb


class TestUtils(unittest.TestCase):
    def test_color_temp_to_white_levels(self):
        assert color_temp_to_white_levels(2800, 80) == (204, 0)
        assert color_temp_to_white_levels(2800, 100) == (255, 0)
        assert color_temp_to_white_levels(6500, 100) == (0, 255)
        assert color_temp_to_white_levels(6500, 0) == (0, 0)
        with pytest.raises(ValidationError):
            color_temp_to_white_levels(2700, 50)
        with pytest.raises(ValidationError):
            color_temp_to_white_levels(3000, 150)

    def test_white_levels_to_color_temp(self):
        assert white_levels_to_color_temp(204, 0) == (2800, 80)
        assert white_levels_to_color_temp(0, 255) == (6500, 100)
        assert white_levels_to_color_temp(0, 0) == (2800, 0)
        assert white_levels_to_color_temp(255, 255) == (4650, 100)
        with pytest.raises(ValidationError):
            white_levels_to_color_temp(256, 0)

    def test_white_levels_round_trip(self):
        for temperature in range(2800, 6501, 100):
            levels = color_temp_to_white_levels(temperature, 100)
            result = white_levels_to_color_temp(*levels)
            assert result.temperature == pytest.approx(temperature, abs=10)
            assert result.brightness == 100

    def test_brightness_changes_keep_temperature_close(self):
        # 8-bit white levels quantize the ratio, dimmer levels more coarsely
        for temperature in range(2800, 6501, 50):
            current = white_levels_to_color_temp(
                *color_temp_to_white_levels(temperature, 100)
            ).temperature
            for brightness in (30, 80, 30, 80):
                levels = color_temp_to_white_levels(current, brightness)
                current = white_levels_to_color_temp(*levels).temperature
                assert abs(current - temperature) <= 50, (temperature, brightness)

    def test_bytes_to_hex(self):
        assert utils.bytes_to_hex(b"\x81\x8a") == "0x81 0x8A"
        assert utils.raw_state_to_dec(b"\x01\x02") == "1,2,"


class TestProtocol(unittest.TestCase):
    def setUp(self):
        self.protocol = ProtocolLEDENET()

    def test_encode_get_status(self):
        msg = self.protocol.encode_get_status()
        assert len(msg) == LEDENET_STATE_QUERY_LEN
        assert msg == bytearray(LEDENET_STATE_QUERY)

    def test_encode_set_power(self):
        assert self.protocol.encode_set_power(True) == bytearray(LEDENET_POWER_ON)
        assert self.protocol.encode_set_power(False) == bytearray(LEDENET_POWER_OFF)
        assert len(self.protocol.encode_set_power(True)) == LEDENET_POWER_LEN

    def test_decode_power_response(self):
        assert self.protocol.decode_power_response(LEDENET_POWER_ON_ACK) is True
        assert self.protocol.decode_power_response(LEDENET_POWER_OFF_ACK) is False
        with pytest.raises(BadChecksum):
            self.protocol.decode_power_response(b"\x0f\x71\x23\xa4")
        with pytest.raises(Truncated):
            self.protocol.decode_power_response(b"\x0f\x71")
        with pytest.raises(UnknownOpcode):
            self.protocol.decode_power_response(LEDENET_STATE_QUERY)

    def test_encode_set_levels(self):
        msg = self.protocol.encode_set_levels(255, 0, 0, write_mode=LevelWriteMode.COLORS)
        assert len(msg) == LEDENET_LEVELS_LEN
        assert msg == bytearray(b"\x31\xff\x00\x00\x00\x00\xf0\x0f\x2f")

    def test_encode_set_levels_volatile(self):
        msg = self.protocol.encode_set_rgb(255, 0, 0, 100, persist=False)
        assert msg[0] == 0x41
        assert msg[-1] == checksum(msg[:-1])

    def test_encode_set_levels_out_of_range(self):
        with pytest.raises(ValidationError):
            self.protocol.encode_set_levels(red=256)
        with pytest.raises(ValidationError):
            self.protocol.encode_set_rgb(255, 0, 0, 101)
        with pytest.raises(ValidationError):
            self.protocol.encode_set_temperature(7000, 50)

    def test_encode_set_rgb_scales_by_brightness(self):
        msg = self.protocol.encode_set_rgb(255, 0, 0, 40)
        assert msg == bytearray(b"\x31\x66\x00\x00\x00\x00\xf0\x0f") + bytes(
            [checksum(b"\x31\x66\x00\x00\x00\x00\xf0\x0f")]
        )

    def test_encode_set_temperature(self):
        msg = self.protocol.encode_set_temperature(2800, 80)
        assert msg == bytearray(b"\x31\x00\x00\x00\xcc\x00\x0f\x0f\x1b")

    def test_decode_status(self):
        state = self.protocol.decode_status(LEDENET_STATE_WARM_WHITE)
        assert state.is_on is True
        assert state.model_num == 0x25
        assert state.version_num == 0x01
        assert state.rgb_exact == (0x38, 0x05, 0x06)
        assert state.white_levels == (0xF9, 0x00)
        assert state.cct_temperature == 2800
        assert state.cct_brightness == 98
        assert state.color_mode == COLOR_MODE_CCT
        assert state.brightness == 98

    def test_decode_status_color_mode(self):
        decode = self.protocol.decode_status
        state = decode(_state_frame(red=255, color_mode=0xF0))
        assert state.color_mode == COLOR_MODE_RGB
        assert state.rgb == (255, 0, 0)
        assert state.rgb_brightness == 100
        assert decode(_state_frame(warm_white=10, color_mode=0x00)).color_mode == (
            COLOR_MODE_CCT
        )
        assert decode(_state_frame(red=10, color_mode=0x00)).color_mode == (
            COLOR_MODE_RGB
        )
        assert decode(_state_frame(power=0x24)).is_on is False

    def test_decode_status_rejects_corruption(self):
        frame = _state_frame(red=255, green=135, blue=30, warm_white=12)
        self.protocol.decode_status(frame)
        for position in range(len(frame)):
            for value in range(256):
                if value == frame[position]:
                    continue
                corrupted = bytearray(frame)
                corrupted[position] = value
                with pytest.raises(ProtocolError):
                    self.protocol.decode_status(corrupted)

    def test_decode_status_malformed(self):
        frame = _state_frame()
        with pytest.raises(Truncated):
            self.protocol.decode_status(b"")
        with pytest.raises(Truncated):
            self.protocol.decode_status(frame[:10])
        with pytest.raises(UnknownOpcode):
            self.protocol.decode_status(b"\x82" + frame[1:])
        with pytest.raises(ProtocolError):
            self.protocol.decode_status(frame + b"\x00")
        bad = bytearray(frame)
        bad[-1] = (bad[-1] + 1) & 0xFF
        with pytest.raises(BadChecksum):
            self.protocol.decode_status(bad)


class TestLedNetDevice(unittest.TestCase):
    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_get_status(self, mock_connect, mock_read, mock_send):
        mock_read.return_value = bytearray(LEDENET_STATE_WARM_WHITE)
        device = LedNetDevice("192.168.1.100")
        state = device.get_status()

        self.assertEqual(mock_connect.call_count, 1)
        self.assertEqual(mock_send.call_args, mock.call(bytearray(LEDENET_STATE_QUERY)))
        self.assertEqual(mock_read.call_args, mock.call(14))
        self.assertEqual(state.cct_brightness, 98)

    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_set_power(self, mock_connect, mock_read, mock_send):
        mock_read.return_value = bytearray(LEDENET_POWER_ON_ACK)
        device = LedNetDevice("192.168.1.100")
        assert device.set_power(True) is True
        self.assertEqual(mock_send.call_args, mock.call(bytearray(LEDENET_POWER_ON)))
        self.assertEqual(mock_read.call_args, mock.call(4))

        mock_read.return_value = bytearray(LEDENET_POWER_OFF_ACK)
        assert device.set_power(False) is False
        self.assertEqual(mock_send.call_args, mock.call(bytearray(LEDENET_POWER_OFF)))

    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_set_color_loopback(self, mock_connect, mock_read, mock_send):
        transport = LoopbackTransport()
        mock_send.side_effect = transport.send
        mock_read.side_effect = transport.read
        device = LedNetDevice("192.168.1.100")

        state = device.set_color(RGB(255, 0, 0), 40)
        assert transport.sent[0] == bytes(
            ProtocolLEDENET().encode_set_rgb(255, 0, 0, 40)
        )
        assert transport.sent[1] == LEDENET_STATE_QUERY
        assert state.rgb == (255, 0, 0)
        assert state.rgb_brightness == 40

        for color, brightness in (
            ((255, 135, 30), 75),
            ((0, 0, 255), 100),
            ((0, 255, 0), 1),
            ((128, 0, 255), 55),
        ):
            state = device.set_color(RGB(*color), brightness)
            assert state.rgb == pytest.approx(color, abs=1)
            assert state.rgb_brightness == brightness
            assert state.color_mode == COLOR_MODE_RGB

    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_set_temperature_loopback(self, mock_connect, mock_read, mock_send):
        transport = LoopbackTransport()
        mock_send.side_effect = transport.send
        mock_read.side_effect = transport.read
        device = LedNetDevice("192.168.1.100")

        state = device.set_temperature(6500, 50)
        assert state.cct_temperature == 6500
        assert state.cct_brightness == 50
        assert state.color_mode == COLOR_MODE_CCT
        # the level write and the follow up query use separate connections
        self.assertEqual(mock_connect.call_count, 2)

    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_set_ww_cw_and_rgb_exact(self, mock_connect, mock_read, mock_send):
        transport = LoopbackTransport()
        mock_send.side_effect = transport.send
        mock_read.side_effect = transport.read
        device = LedNetDevice("192.168.1.100")

        state = device.set_ww_cw(10, 20)
        assert state.white_levels == (10, 20)
        state = device.set_rgb_exact(RGB(10, 20, 30))
        assert state.rgb_exact == (10, 20, 30)
        assert state.white_levels == (10, 20)
        state = device.set_rgb_cct(RGB(1, 2, 3), 6500)
        assert state.rgb_exact == (1, 2, 3)
        assert state.white_levels == (0, 255)

    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_volatile_writes(self, mock_connect, mock_read, mock_send):
        transport = LoopbackTransport()
        mock_send.side_effect = transport.send
        mock_read.side_effect = transport.read
        device = LedNetDevice("192.168.1.100", persist=False)
        device.set_temperature(4000, 10)
        assert transport.sent[0][0] == 0x41

    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_set_cct_brightness_abbreviated(self, mock_connect, mock_read, mock_send):
        calls = 0

        def read_data(expected):
            nonlocal calls
            calls += 1
            self.assertEqual(expected, 14)
            if calls == 1:
                # showing full red, whites off
                return _state_frame(red=255, color_mode=0xF0)
            if calls == 2:
                return _state_frame(warm_white=204, color_mode=0x0F)
            raise Exception

        mock_read.side_effect = read_data
        device = LedNetDevice("192.168.1.100")
        before = device.get_status()
        assert before.cct_temperature == 2800
        assert before.rgb_brightness == 100

        calls = 0
        mock_read.side_effect = read_data
        mock_send.reset_mock()
        command = resolve(["set", "c", "b", "80"])
        self.assertEqual(command, Command(CommandType.CCT_SET_BRIGHTNESS, brightness=80))

        state = execute(device, command)
        self.assertEqual(
            mock_send.call_args_list,
            [
                mock.call(bytearray(LEDENET_STATE_QUERY)),
                mock.call(bytearray(b"\x31\x00\x00\x00\xcc\x00\x0f\x0f\x1b")),
                mock.call(bytearray(LEDENET_STATE_QUERY)),
            ],
        )
        assert state.cct_temperature == 2800
        assert state.cct_brightness == 80
        result = DeviceResult(DeviceAddress("192.168.1.100"), device.name, value=state)
        self.assertEqual(
            format_status(result),
            "LEDNET -- Address: 192.168.1.100:5577 Power: ON "
            "RGB: [rgb(255, 255, 255) @ 0%] CCT: [2800K @ 80%]",
        )

    @patch("homectl.device.LedNetDevice.connect")
    def test_unreachable(self, mock_connect):
        mock_connect.side_effect = OSError("Connection refused")
        device = LedNetDevice("192.168.1.100")
        with pytest.raises(DeviceUnreachable) as exc:
            device.get_status()
        assert "192.168.1.100:5577" in str(exc.value)
        assert "Connection refused" in str(exc.value)
        assert device._socket is None

    @patch("homectl.device.select.select")
    def test_read_msg_reassembles_chunks(self, mock_select):
        device = LedNetDevice("192.168.1.100")
        device._socket = mock.MagicMock()
        mock_select.return_value = ([device._socket], [], [])
        device._socket.recv.side_effect = [
            LEDENET_STATE_WARM_WHITE[:5],
            LEDENET_STATE_WARM_WHITE[5:],
        ]
        assert device._read_msg(14) == bytearray(LEDENET_STATE_WARM_WHITE)

    @patch("homectl.device.select.select")
    def test_read_msg_silent_device(self, mock_select):
        device = LedNetDevice("192.168.1.100", timeout=0.1)
        device._socket = mock.MagicMock()
        mock_select.return_value = ([], [], [])
        with pytest.raises(DeviceUnreachable):
            device._read_msg(14)

    @patch("homectl.device.select.select")
    def test_read_msg_short_frame(self, mock_select):
        device = LedNetDevice("192.168.1.100")
        device._socket = mock.MagicMock()
        mock_select.return_value = ([device._socket], [], [])
        device._socket.recv.side_effect = [LEDENET_STATE_WARM_WHITE[:6], b""]
        rx = device._read_msg(14)
        with pytest.raises(Truncated):
            ProtocolLEDENET().decode_status(rx)

    def test_name(self):
        assert LedNetDevice("192.168.1.100").name == "LEDNET"
        device = LedNetDevice("192.168.1.100", model="HF-LPB100-ZJ200")
        assert device.name == "LEDNET:HF-LPB100-ZJ200"
        assert device.description == "LEDNET:HF-LPB100-ZJ200 @ 192.168.1.100"
        assert str(device.address) == "192.168.1.100:5577"


class TestScanner(unittest.TestCase):
    @patch("homectl.scanner.select.select")
    @patch("homectl.scanner.create_udp_socket")
    def test_scan_no_devices(self, mock_create, mock_select):
        sock = mock_create.return_value
        mock_select.return_value = ([], [], [])
        scanner = LedNetScanner()
        assert scanner.scan(timeout=0.1) == []
        sock.sendto.assert_called_once_with(
            DISCOVERY_MESSAGE, ("<broadcast>", DISCOVERY_PORT)
        )
        sock.close.assert_called_once()

    @patch("homectl.scanner.select.select")
    @patch("homectl.scanner.create_udp_socket")
    def test_scan(self, mock_create, mock_select):
        sock = mock_create.return_value
        ready = ([sock], [], [])
        mock_select.side_effect = [ready] * 7 + [([], [], [])]
        sock.recvfrom.side_effect = [
            (DISCOVERY_MESSAGE, ("192.168.1.50", DISCOVERY_PORT)),
            (SUPPORTED_REPLY, ("192.168.1.12", DISCOVERY_PORT)),
            BlockingIOError(),
            (b"\xff\xfe\xfd", ("192.168.1.7", DISCOVERY_PORT)),
            (b"hello", ("192.168.1.8", DISCOVERY_PORT)),
            (UNSUPPORTED_REPLY, ("192.168.1.5", DISCOVERY_PORT)),
            (SUPPORTED_REPLY, ("192.168.1.12", DISCOVERY_PORT)),
        ]
        scanner = LedNetScanner()
        found = scanner.scan(timeout=5)

        assert [device.address.host for device in found] == [
            "192.168.1.5",
            "192.168.1.12",
        ]
        assert found[1] == DiscoveredDevice(
            address=DeviceAddress("192.168.1.12"),
            id="F0FE6B5A6D68",
            model="HF-LPB100-ZJ200",
            raw=SUPPORTED_REPLY,
        )
        assert found[0].is_supported is False
        assert scanner.supported_devices == [found[1]]
        sock.close.assert_called_once()

    @patch("homectl.scanner.select.select")
    @patch("homectl.scanner.create_udp_socket")
    def test_scan_single_address(self, mock_create, mock_select):
        sock = mock_create.return_value
        mock_select.return_value = ([sock], [], [])
        sock.recvfrom.return_value = (SUPPORTED_REPLY, ("192.168.1.12", DISCOVERY_PORT))
        scanner = LedNetScanner()
        found = scanner.scan(timeout=5, address="192.168.1.12")
        assert len(found) == 1
        sock.sendto.assert_called_once_with(
            DISCOVERY_MESSAGE, ("192.168.1.12", DISCOVERY_PORT)
        )
        self.assertEqual(sock.recvfrom.call_count, 1)


class TestCommands(unittest.TestCase):
    def test_match_abbreviation(self):
        choices = ("rgb", "cct")
        assert match_abbreviation("r", choices) == "rgb"
        assert match_abbreviation("RGB", choices) == "rgb"
        assert match_abbreviation("c", choices) == "cct"
        with pytest.raises(UnknownToken):
            match_abbreviation("x", choices)
        with pytest.raises(UnknownToken):
            match_abbreviation("", choices)
        with pytest.raises(AmbiguousAbbreviation) as exc:
            match_abbreviation("o", ("on", "off"))
        assert exc.value.matches == ("on", "off")

    def test_exact_match_wins(self):
        assert match_abbreviation("on", ("on", "once")) == "on"

    def test_resolve(self):
        assert resolve(["on"]) == Command(CommandType.ON)
        assert resolve(["of"]) == Command(CommandType.OFF)
        assert resolve(["st"]) == Command(CommandType.STATUS)
        assert resolve(["g", "o"]) == Command(CommandType.IS_ON)
        assert resolve(["get", "a"]) == Command(CommandType.GET_ADDRESS)
        assert resolve(["get", "p"]) == Command(CommandType.GET_PORT)
        assert resolve(["g", "r", "b"]) == Command(CommandType.RGB_GET_BRIGHTNESS)
        assert resolve(["g", "r", "e"]) == Command(CommandType.RGB_GET_EXACT)
        assert resolve(["g", "c", "t"]) == Command(CommandType.CCT_GET_TEMPERATURE)
        assert resolve(["set", "c", "b", "80"]) == Command(
            CommandType.CCT_SET_BRIGHTNESS, brightness=80
        )
        assert resolve(["s", "r", "f", "rgb(255,135,30)", "75%"]) == Command(
            CommandType.RGB_SET, color=RGB(255, 135, 30), brightness=75
        )
        assert resolve(["set", "rgb", "color", "red"]) == Command(
            CommandType.RGB_SET_COLOR, color=NamedColor("red")
        )
        assert resolve(["set", "cct", "full", "3500", "85"]) == Command(
            CommandType.CCT_SET, temperature=3500, brightness=85
        )
        assert resolve(["set", "cct", "temp", "3500K"]) == Command(
            CommandType.CCT_SET_TEMPERATURE, temperature=3500
        )

    def test_resolve_errors(self):
        with pytest.raises(AmbiguousAbbreviation):
            resolve(["s"])
        with pytest.raises(AmbiguousAbbreviation):
            resolve(["o"])
        with pytest.raises(UnknownToken):
            resolve(["blink"])
        with pytest.raises(ParseError):
            resolve([])
        with pytest.raises(ParseError):
            resolve(["get", "cct"])
        with pytest.raises(ParseError):
            resolve(["on", "now"])
        with pytest.raises(ParseError):
            resolve(["set", "rgb", "full", "red"])
        with pytest.raises(ParseError):
            resolve(["set", "rgb", "color", "notacolor"])
        with pytest.raises(ParseError):
            resolve(["set", "rgb", "brightness", "bright"])
        with pytest.raises(ParseError):
            resolve(["set", "cct", "temperature", "red"])

    def test_resolve_out_of_range(self):
        with pytest.raises(ValidationError):
            resolve(["set", "rgb", "brightness", "150"])
        with pytest.raises(ValidationError):
            resolve(["set", "cct", "brightness", "-1"])
        with pytest.raises(ValidationError):
            resolve(["set", "cct", "temperature", "2000"])

    def test_connections(self):
        assert resolve(["get", "address"]).connections == 0
        assert resolve(["status"]).connections == 1
        assert resolve(["on"]).connections == 1
        assert resolve(["set", "rgb", "full", "red", "50"]).connections == 2
        assert resolve(["set", "cct", "brightness", "50"]).connections == 3
        assert resolve(["status"]).is_query is True
        assert resolve(["on"]).is_query is False


class _HangingDevice(LedNetDevice):
    release = threading.Event()

    def get_status(self):
        self.release.wait(10)
        raise DeviceUnreachable(self.address, "released")


class TestDispatcher(unittest.TestCase):
    @patch("homectl.device.LedNetDevice._set_levels", autospec=True)
    def test_one_unreachable(self, mock_set_levels):
        def set_levels(device, msg):
            if device.ipaddr == "192.168.1.2":
                raise DeviceUnreachable(device.address, "Connection refused")
            return ProtocolLEDENET().decode_status(_state_frame(red=255))

        mock_set_levels.side_effect = set_levels
        dispatcher = CommandDispatcher(timeout=1)
        results = dispatcher.dispatch(
            resolve(["set", "rgb", "full", "red", "100"]),
            [DeviceAddress("192.168.1.1"), DeviceAddress("192.168.1.2")],
        )

        assert len(results) == 2
        assert results[0].address == DeviceAddress("192.168.1.1")
        assert results[0].ok
        assert results[0].value.rgb == (255, 0, 0)
        assert results[1].address == DeviceAddress("192.168.1.2")
        assert not results[1].ok
        assert isinstance(results[1].error, DeviceUnreachable)

    @patch("homectl.device.LedNetDevice.get_status")
    def test_order_kept_with_fewer_workers(self, mock_get_status):
        mock_get_status.return_value = ProtocolLEDENET().decode_status(
            LEDENET_STATE_WARM_WHITE
        )
        targets = [DeviceAddress(f"192.168.1.{host}") for host in (9, 3, 7, 1)]
        dispatcher = CommandDispatcher(timeout=1, max_workers=2)
        results = dispatcher.dispatch(resolve(["get", "cct", "brightness"]), targets)
        assert [result.address for result in results] == targets
        assert [result.value for result in results] == [98] * 4

    def test_offline_queries(self):
        target = DiscoveredDevice(
            address=DeviceAddress("192.168.1.12", 5577),
            id="F0FE6B5A6D68",
            model="HF-LPB100-ZJ200",
            raw=SUPPORTED_REPLY,
        )
        dispatcher = CommandDispatcher()
        (result,) = dispatcher.dispatch(resolve(["get", "address"]), [target])
        assert result.value == "192.168.1.12"
        assert result.name == "LEDNET:HF-LPB100-ZJ200"
        (result,) = dispatcher.dispatch(resolve(["get", "port"]), [target])
        assert result.value == 5577
        assert dispatcher.dispatch(resolve(["status"]), []) == []

    def test_task_timeout(self):
        dispatcher = CommandDispatcher(timeout=2)
        assert dispatcher.task_timeout(resolve(["status"])) == 5.0
        assert dispatcher.task_timeout(resolve(["set", "c", "b", "50"])) == 13.0

    def test_slow_device_times_out(self):
        dispatcher = CommandDispatcher(timeout=0.05, device_factory=_HangingDevice)
        try:
            (result,) = dispatcher.dispatch(
                resolve(["status"]), [DeviceAddress("192.168.1.1")]
            )
        finally:
            _HangingDevice.release.set()
        assert isinstance(result.error, DeviceUnreachable)
        assert "timed out" in str(result.error)

    def test_identify_address(self):
        scanner = mock.Mock()
        scanner.scan.return_value = [
            DiscoveredDevice(
                address=DeviceAddress("192.168.1.12"),
                id="F0FE6B5A6D68",
                model="HF-LPB100-ZJ200",
                raw=SUPPORTED_REPLY,
            )
        ]
        dispatcher = CommandDispatcher(identify=True, scanner_factory=lambda: scanner)
        found = dispatcher.identify_address(DeviceAddress("192.168.1.12", 6000))
        assert found.address == DeviceAddress("192.168.1.12", 6000)
        assert found.model == "HF-LPB100-ZJ200"
        self.assertEqual(
            scanner.scan.call_args, mock.call(timeout=2, address="192.168.1.12")
        )

        scanner.scan.return_value = [
            DiscoveredDevice(
                address=DeviceAddress("192.168.1.5"),
                id="B4E842123245",
                model="AK001-ZJ2147",
                raw=UNSUPPORTED_REPLY,
            )
        ]
        with pytest.raises(UnsupportedDevice) as exc:
            dispatcher.identify_address(DeviceAddress("192.168.1.5"))
        assert str(exc.value) == "Device not supported (AK001-ZJ2147)"

        scanner.scan.return_value = []
        with pytest.raises(DeviceUnreachable):
            dispatcher.identify_address(DeviceAddress("192.168.1.7"))

        scanner.scan.side_effect = OSError("Network is unreachable")
        with pytest.raises(DeviceUnreachable):
            dispatcher.identify_address(DeviceAddress("192.168.1.7"))

    def test_identify_skips_discovered_devices(self):
        scanner = mock.Mock()
        target = DiscoveredDevice(
            address=DeviceAddress("192.168.1.12"),
            id="F0FE6B5A6D68",
            model="HF-LPB100-ZJ200",
            raw=SUPPORTED_REPLY,
        )
        dispatcher = CommandDispatcher(identify=True, scanner_factory=lambda: scanner)
        (result,) = dispatcher.dispatch(resolve(["get", "port"]), [target])
        assert result.value == 5577
        scanner.scan.assert_not_called()

    def test_task_timeout_includes_identification(self):
        dispatcher = CommandDispatcher(timeout=2, identify=True, discovery_timeout=3)
        assert dispatcher.task_timeout(resolve(["status"])) == 8.0


def _answer_discovery(models):
    """Replies to a targeted discovery request with the model for each host."""

    def scan(timeout=None, address=None):
        model = models.get(address)
        if model is None:
            return []
        return [
            DiscoveredDevice(
                address=DeviceAddress(address),
                id="F0FE6B5A6D68",
                model=model,
                raw=f"{address},F0FE6B5A6D68,{model}".encode(),
            )
        ]

    return scan


class TestCli(unittest.TestCase):
    def test_usage_errors(self):
        for argv in (
            [],
            ["192.168.1.100"],
            ["192.168.1.100", "blink"],
            ["192.168.1.100", "set", "rgb", "brightness", "150"],
            ["on"],
        ):
            with patch("sys.stderr", new_callable=io.StringIO):
                with pytest.raises(SystemExit) as exc:
                    main(argv)
            assert exc.value.code == 2, argv

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("homectl.scanner.LedNetScanner.scan")
    def test_get_port(self, mock_scan, mock_stdout):
        mock_scan.side_effect = _answer_discovery(
            {"192.168.1.100": "HF-LPB100-ZJ200", "192.168.1.101": "HF-LPB100-ZJ200"}
        )
        with pytest.raises(SystemExit) as exc:
            main(["192.168.1.100:6000", "192.168.1.101", "get", "port"])
        assert exc.value.code == 0
        assert mock_stdout.getvalue() == (
            "LEDNET:HF-LPB100-ZJ200 @ 192.168.1.100: 6000\n"
            "LEDNET:HF-LPB100-ZJ200 @ 192.168.1.101: 5577\n"
        )
        self.assertEqual(
            sorted(call.kwargs["address"] for call in mock_scan.call_args_list),
            ["192.168.1.100", "192.168.1.101"],
        )

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("homectl.scanner.LedNetScanner.scan")
    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_status(self, mock_connect, mock_read, mock_send, mock_scan, mock_stdout):
        mock_scan.side_effect = _answer_discovery({"192.168.1.100": "HF-LPB100-ZJ200"})
        mock_read.return_value = bytearray(LEDENET_STATE_WARM_WHITE)
        with pytest.raises(SystemExit) as exc:
            main(["192.168.1.100", "status"])
        assert exc.value.code == 0
        output = mock_stdout.getvalue()
        assert output.startswith(
            "LEDNET:HF-LPB100-ZJ200 -- Address: 192.168.1.100:5577 Power: ON"
        )
        assert "CCT: [2800K @ 98%]" in output

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("homectl.scanner.LedNetScanner.scan")
    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_unsupported_address_is_skipped(
        self, mock_connect, mock_read, mock_send, mock_scan, mock_stdout
    ):
        mock_scan.side_effect = _answer_discovery(
            {"192.168.1.5": "AK001-ZJ2147", "192.168.1.12": "HF-LPB100-ZJ200"}
        )
        mock_read.return_value = bytearray(LEDENET_STATE_WARM_WHITE)
        with pytest.raises(SystemExit) as exc:
            main(["192.168.1.5", "192.168.1.12", "get", "on"])
        assert exc.value.code == 0
        assert mock_stdout.getvalue() == (
            "192.168.1.5: Device not supported (AK001-ZJ2147)\n"
            "LEDNET:HF-LPB100-ZJ200 @ 192.168.1.12: true\n"
        )
        # the unsupported controller is never sent a frame
        self.assertEqual(mock_connect.call_count, 1)
        self.assertEqual(mock_send.call_args_list, [mock.call(bytearray(LEDENET_STATE_QUERY))])

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("sys.stderr", new_callable=io.StringIO)
    @patch("homectl.scanner.LedNetScanner.scan")
    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_silent_address_fails_alone(
        self, mock_connect, mock_read, mock_send, mock_scan, mock_stderr, mock_stdout
    ):
        mock_scan.side_effect = _answer_discovery({"192.168.1.12": "HF-LPB100-ZJ200"})
        mock_read.return_value = bytearray(LEDENET_STATE_WARM_WHITE)
        with pytest.raises(SystemExit) as exc:
            main(["192.168.1.7", "192.168.1.12", "get", "on"])
        assert exc.value.code == 1
        assert mock_stderr.getvalue() == (
            "LEDNET @ 192.168.1.7: 192.168.1.7:5577 is unreachable: "
            "no answer to the discovery request\n"
        )
        assert mock_stdout.getvalue() == "LEDNET:HF-LPB100-ZJ200 @ 192.168.1.12: true\n"

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("homectl.scanner.LedNetScanner.scan")
    @patch("homectl.device.LedNetDevice._send_msg")
    @patch("homectl.device.LedNetDevice._read_msg")
    @patch("homectl.device.LedNetDevice.connect")
    def test_set_prints_nothing(
        self, mock_connect, mock_read, mock_send, mock_scan, mock_stdout
    ):
        transport = LoopbackTransport()
        mock_send.side_effect = transport.send
        mock_read.side_effect = transport.read
        mock_scan.side_effect = _answer_discovery({"192.168.1.100": "HF-LPB100-ZJ200"})
        for argv in (
            ["192.168.1.100", "set", "rgb", "full", "red", "50"],
            ["192.168.1.100", "set", "c", "b", "80"],
            ["192.168.1.100", "on"],
        ):
            with pytest.raises(SystemExit) as exc:
                main(argv)
            assert exc.value.code == 0, argv
        assert mock_stdout.getvalue() == ""
        assert transport.levels[0] == 128
        assert transport.levels[3] == 204

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("sys.stderr", new_callable=io.StringIO)
    @patch("homectl.scanner.LedNetScanner.scan")
    @patch("homectl.device.LedNetDevice.connect")
    def test_unreachable(self, mock_connect, mock_scan, mock_stderr, mock_stdout):
        mock_scan.side_effect = _answer_discovery({"192.168.1.100": "HF-LPB100-ZJ200"})
        mock_connect.side_effect = OSError("Connection refused")
        with pytest.raises(SystemExit) as exc:
            main(["-t", "0.1", "192.168.1.100", "get", "on"])
        assert exc.value.code == 1
        assert "192.168.1.100:5577 is unreachable" in mock_stderr.getvalue()
        assert mock_stdout.getvalue() == ""

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("homectl.cli.LedNetScanner.scan")
    def test_discover_nothing(self, mock_scan, mock_stdout):
        mock_scan.return_value = []
        with pytest.raises(SystemExit) as exc:
            main(["-d", "off"])
        assert exc.value.code == 0
        assert mock_stdout.getvalue() == "No devices found.\n"

    @patch("sys.stdout", new_callable=io.StringIO)
    @patch("homectl.cli.LedNetScanner.scan")
    def test_discover_ignores_addresses(self, mock_scan, mock_stdout):
        mock_scan.return_value = []
        with pytest.raises(SystemExit) as exc:
            main(["-d", "192.168.1.100", "192.168.1.101", "off"])
        assert exc.value.code == 0
        assert mock_stdout.getvalue() == "No devices found.\n"
        mock_scan.assert_called_once()
        assert mock_scan.call_args.kwargs.get("address") is None
