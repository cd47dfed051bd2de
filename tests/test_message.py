import io
import itertools
import re
from datetime import datetime, timezone

import pytest

from postmark.message import Message
from postmark.mimeenc import Encoding

DATE = datetime(2014, 6, 25, 17, 46, tzinfo=timezone.utc)
PREFIX = "Mime-Version: 1.0\r\nDate: Wed, 25 Jun 2014 17:46:00 +0000\r\n"
B64_PDF = "Q29udGVudCBvZiB0ZXN0LnBkZg=="  # "Content of test.pdf"


def mock_copy(name):
    base = name.rsplit("/", 1)[-1]
    return lambda w: w.write(("Content of " + base).encode())


def b64(text):
    import base64
    return base64.b64encode(text.encode()).decode()


def check(m, count, content):
    got = m.as_bytes(DATE).decode()
    want = PREFIX + content
    for i, b in enumerate(re.findall(r"boundary=(\w+)", got)[:count], start=1):
        want = want.replace(f"_BOUNDARY_{i}_", b)
    got_lines = got.split("\r\n")
    want_lines = want.split("\r\n")
    assert len(got_lines) <= len(want_lines), got
    in_header, start = True, 0
    for i, line in enumerate(want_lines):
        assert i < len(got_lines), f"missing {line!r}\n{got}"
        if line == got_lines[i]:
            if line == "":
                in_header = False
            elif not in_header and len(line) > 2 and line.startswith("--"):
                in_header, start = True, i + 1
            continue
        assert in_header, f"missing {line!r}\n{got}"
        block = itertools.takewhile(lambda l: l != "", got_lines[start:])
        assert line in list(block), f"missing {line!r}\n{got}"


def base():
    m = Message()
    m.set_header("From", "from@example.com")
    m.set_header("To", "to@example.com")
    return m


HEAD = "From: from@example.com\r\nTo: to@example.com\r\n"


def test_message():
    m = Message()
    m.set_address_header("From", "from@example.com", "Señor From")
    m.set_header("To", m.format_address("to@example.com", "Señor To"), "tobis@example.com")
    m.set_address_header("Cc", "cc@example.com", "A, B")
    m.set_address_header("X-To", "ccbis@example.com", "à, b")
    m.set_date_header("X-Date", DATE)
    m.set_header("X-Date-2", m.format_date(DATE))
    m.set_header("Subject", "¡Hola, señor!")
    m.set_headers({"X-Headers": ["Test", "Café"]})
    m.set_body("text/plain", "¡Hola, señor!")
    check(m, 0,
          "From: =?UTF-8?q?Se=C3=B1or_From?= <from@example.com>\r\n"
          "To: =?UTF-8?q?Se=C3=B1or_To?= <to@example.com>, tobis@example.com\r\n"
          "Cc: \"A, B\" <cc@example.com>\r\n"
          "X-To: =?UTF-8?b?w6AsIGI=?= <ccbis@example.com>\r\n"
          "X-Date: Wed, 25 Jun 2014 17:46:00 +0000\r\n"
          "X-Date-2: Wed, 25 Jun 2014 17:46:00 +0000\r\n"
          "Subject: =?UTF-8?q?=C2=A1Hola,_se=C3=B1or!?=\r\n"
          "X-Headers: Test, =?UTF-8?q?Caf=C3=A9?=\r\n"
          "Content-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\n"
          "=C2=A1Hola, se=C3=B1or!")


def test_custom_message():
    m = Message(charset="ISO-8859-1", encoding=Encoding.BASE64)
    m.set_headers({"From": ["from@example.com"], "To": ["to@example.com"], "Subject": ["Café"]})
    m.set_body("text/html", "¡Hola, señor!")
    check(m, 0, HEAD + "Subject: =?ISO-8859-1?b?Q2Fmw6k=?=\r\n"
          "Content-Type: text/html; charset=ISO-8859-1\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\nwqFIb2xhLCBzZcOxb3Ih")


def test_unencoded_message():
    m = Message(encoding=Encoding.UNENCODED)
    m.set_headers({"From": ["from@example.com"], "To": ["to@example.com"], "Subject": ["Café"]})
    m.set_body("text/html", "¡Hola, señor!")
    check(m, 0, HEAD + "Subject: =?UTF-8?q?Caf=C3=A9?=\r\n"
          "Content-Type: text/html; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: 8bit\r\n\r\n¡Hola, señor!")


def test_alternative_and_part_setting():
    m = base()
    m.set_body("text/plain; format=flowed", "¡Hola, señor!", encoding=Encoding.UNENCODED)
    m.add_alternative("text/html", "¡<b>Hola</b>, <i>señor</i>!</h1>")
    check(m, 1, HEAD + "Content-Type: multipart/alternative;\r\n boundary=_BOUNDARY_1_\r\n\r\n"
          "--_BOUNDARY_1_\r\n"
          "Content-Type: text/plain; format=flowed; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: 8bit\r\n\r\n¡Hola, señor!\r\n"
          "--_BOUNDARY_1_\r\n"
          "Content-Type: text/html; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\n"
          "=C2=A1<b>Hola</b>, <i>se=C3=B1or</i>!</h1>\r\n"
          "--_BOUNDARY_1_--\r\n")


def test_body_writer():
    m = base()
    m.add_alternative_writer("text/plain", lambda w: w.write(b"Test message"))
    m.add_alternative_writer("text/html", lambda w: w.write(b"Test HTML"))
    check(m, 1, HEAD + "Content-Type: multipart/alternative;\r\n boundary=_BOUNDARY_1_\r\n\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\nTest message\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: text/html; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\nTest HTML\r\n"
          "--_BOUNDARY_1_--\r\n")


def test_attachment_reader():
    m = base()
    m.attach_reader("file.txt", io.BytesIO(b"Test file"))
    check(m, 0, HEAD + "Content-Type: text/plain; charset=utf-8; name=\"file.txt\"\r\n"
          "Content-Disposition: attachment; filename=\"file.txt\"\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\n" + b64("Test file"))


def test_attachment_only():
    m = base()
    m.attach("/tmp/test.pdf", copy_func=mock_copy("/tmp/test.pdf"))
    check(m, 0, HEAD + "Content-Type: application/pdf; name=\"test.pdf\"\r\n"
          "Content-Disposition: attachment; filename=\"test.pdf\"\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\n" + B64_PDF)


@pytest.mark.parametrize("rename, shown", [(None, "test.pdf"), ("another.pdf", "another.pdf")])
def test_attachment_with_body(rename, shown):
    m = base()
    m.set_body("text/plain", "Test")
    m.attach("/tmp/test.pdf", copy_func=mock_copy("/tmp/test.pdf"), rename=rename)
    check(m, 1, HEAD + "Content-Type: multipart/mixed;\r\n boundary=_BOUNDARY_1_\r\n\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\nTest\r\n"
          f"--_BOUNDARY_1_\r\nContent-Type: application/pdf; name=\"{shown}\"\r\n"
          f"Content-Disposition: attachment; filename=\"{shown}\"\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\n" + B64_PDF + "\r\n"
          "--_BOUNDARY_1_--\r\n")


def test_attachments_only():
    m = base()
    m.attach("/tmp/test.pdf", copy_func=mock_copy("/tmp/test.pdf"))
    m.attach("/tmp/test.zip", copy_func=mock_copy("/tmp/test.zip"))
    check(m, 1, HEAD + "Content-Type: multipart/mixed;\r\n boundary=_BOUNDARY_1_\r\n\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: application/pdf; name=\"test.pdf\"\r\n"
          "Content-Disposition: attachment; filename=\"test.pdf\"\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\n" + B64_PDF + "\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: application/zip; name=\"test.zip\"\r\n"
          "Content-Disposition: attachment; filename=\"test.zip\"\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\n" + b64("Content of test.zip") + "\r\n"
          "--_BOUNDARY_1_--\r\n")


def test_embedded_reader():
    m = base()
    m.embed_reader("file.txt", io.BytesIO(b"Test file"))
    check(m, 0, HEAD + "Content-Type: text/plain; charset=utf-8; name=\"file.txt\"\r\n"
          "Content-Transfer-Encoding: base64\r\n"
          "Content-Disposition: inline; filename=\"file.txt\"\r\n"
          "Content-ID: <file.txt>\r\n\r\n" + b64("Test file"))


def test_embedded():
    m = base()
    m.embed("image1.jpg", copy_func=mock_copy("image1.jpg"),
            headers={"Content-ID": ["<test-content-id>"]})
    m.embed("image2.jpg", copy_func=mock_copy("image2.jpg"))
    m.set_body("text/plain", "Test")
    check(m, 1, HEAD + "Content-Type: multipart/related;\r\n boundary=_BOUNDARY_1_\r\n\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\nTest\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: image/jpeg; name=\"image1.jpg\"\r\n"
          "Content-Disposition: inline; filename=\"image1.jpg\"\r\n"
          "Content-ID: <test-content-id>\r\nContent-Transfer-Encoding: base64\r\n\r\n"
          + b64("Content of image1.jpg") + "\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: image/jpeg; name=\"image2.jpg\"\r\n"
          "Content-Disposition: inline; filename=\"image2.jpg\"\r\n"
          "Content-ID: <image2.jpg>\r\nContent-Transfer-Encoding: base64\r\n\r\n"
          + b64("Content of image2.jpg") + "\r\n--_BOUNDARY_1_--\r\n")


def test_full_message_and_reset():
    m = base()
    m.set_body("text/plain", "¡Hola, señor!")
    m.add_alternative("text/html", "¡<b>Hola</b>, <i>señor</i>!</h1>")
    m.attach("test.pdf", copy_func=mock_copy("test.pdf"))
    m.embed("image.jpg", copy_func=mock_copy("image.jpg"))
    check(m, 3, HEAD + "Content-Type: multipart/mixed;\r\n boundary=_BOUNDARY_1_\r\n\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: multipart/related;\r\n boundary=_BOUNDARY_2_\r\n\r\n"
          "--_BOUNDARY_2_\r\nContent-Type: multipart/alternative;\r\n boundary=_BOUNDARY_3_\r\n\r\n"
          "--_BOUNDARY_3_\r\nContent-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\n=C2=A1Hola, se=C3=B1or!\r\n"
          "--_BOUNDARY_3_\r\nContent-Type: text/html; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\n"
          "=C2=A1<b>Hola</b>, <i>se=C3=B1or</i>!</h1>\r\n--_BOUNDARY_3_--\r\n\r\n"
          "--_BOUNDARY_2_\r\nContent-Type: image/jpeg; name=\"image.jpg\"\r\n"
          "Content-Disposition: inline; filename=\"image.jpg\"\r\n"
          "Content-ID: <image.jpg>\r\nContent-Transfer-Encoding: base64\r\n\r\n"
          + b64("Content of image.jpg") + "\r\n--_BOUNDARY_2_--\r\n\r\n"
          "--_BOUNDARY_1_\r\nContent-Type: application/pdf; name=\"test.pdf\"\r\n"
          "Content-Disposition: attachment; filename=\"test.pdf\"\r\n"
          "Content-Transfer-Encoding: base64\r\n\r\n" + B64_PDF + "\r\n--_BOUNDARY_1_--\r\n")

    m.reset()
    m.set_header("From", "from@example.com")
    m.set_header("To", "to@example.com")
    m.set_body("text/plain", "Test reset")
    check(m, 0, HEAD + "Content-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\nTest reset")


def test_qp_line_length():
    m = base()
    z = "0"
    m.set_body("text/plain", z * 76 + "\r\n" + z * 75 + "à\r\n" + z * 74 + "à\r\n"
               + z * 73 + "à\r\n" + z * 72 + "à\r\n" + z * 75 + "\r\n" + z * 76 + "\n")
    check(m, 0, HEAD + "Content-Type: text/plain; charset=UTF-8\r\n"
          "Content-Transfer-Encoding: quoted-printable\r\n\r\n"
          + z * 75 + "=\r\n0\r\n" + z * 75 + "=\r\n=C3=A0\r\n" + z * 74 + "=\r\n=C3=A0\r\n"
          + z * 73 + "=\r\n=C3=A0\r\n" + z * 72 + "=C3=\r\n=A0\r\n" + z * 75 + "\r\n"
          + z * 75 + "=\r\n0\r\n")


def test_empty_name():
    m = Message()
    m.set_address_header("From", "from@example.com", "")
    check(m, 0, "From: from@example.com\r\n")


def test_empty_header():
    m = Message()
    m.set_headers({"From": ["from@example.com"], "X-Empty": None})
    check(m, 0, "From: from@example.com\r\nX-Empty:\r\n")


def test_format_address_escapes_quotes():
    m = Message()
    assert m.format_address("bob@example.com", 'Bob "B" \\') == (
        '"Bob \\"B\\" \\\\" <bob@example.com>')


def test_get_header_and_reset_keep_settings():
    m = Message(charset="ISO-8859-1", encoding="base64")
    m.set_header("Subject", "Hello!")
    assert m.get_header("Subject") == ["Hello!"]
    assert m.get_header("Missing") == []
    m.reset()
    assert m.get_header("Subject") == []
    assert (m.charset, m.encoding) == ("ISO-8859-1", Encoding.BASE64)


def test_invalid_encoding():
    with pytest.raises(ValueError):
        Message(encoding="rot13")


def test_attach_from_disk(tmp_path):
    path = tmp_path / "notes.bin"
    path.write_bytes(b"Test file")
    m = Message()
    m.attach(str(path))
    got = m.as_bytes(DATE).decode()
    assert "Content-Type: application/octet-stream; name=\"notes.bin\"\r\n" in got
    assert got.endswith("\r\n\r\n" + b64("Test file"))


def test_attach_missing_file_raises():
    m = Message()
    m.attach("/nonexistent/dir/missing.pdf")
    with pytest.raises(FileNotFoundError):
        m.as_bytes(DATE)