# postmark

Build MIME e-mail messages, write them out in wire form, and hand them to any sender you choose.

- Header values are encoded as RFC 2047 encoded-words where needed. Long header lines are folded at about 76 characters.
- Bodies can be quoted-printable, base64 or unencoded 8bit.
- A message can have several alternative bodies, such as plain text and HTML.
- Files can be attached or embedded. Embedded files are referenced by `cid:`.
- A message can be written to any binary stream.
- The envelope sender and recipients are worked out from the headers.
- It has the LOGIN, PLAIN and CRAM-MD5 authentication exchanges.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Composing a message

```python
from postmark.message import Message

m = Message()
m.set_header("From", "alex@example.com")
m.set_header("To", "bob@example.com", "cora@example.com")
m.set_address_header("Cc", "dan@example.com", "Dan")
m.set_header("Subject", "Hello!")
m.set_body("text/plain", "Hello Bob and Cora!")
m.add_alternative("text/html", "Hello <b>Bob</b> and <i>Cora</i>!")
m.attach("/tmp/report.pdf")
m.attach("/tmp/0000146.jpg", rename="picture.jpg")
```

`set_header` encodes each value that holds non-ASCII text. `set_headers` takes a mapping of field names to lists of values. `get_header` returns the values of a field, or an empty list if the field is not set.

`format_address(address, name)` returns `"Name" <address>`. It encodes the name if needed. `set_address_header` stores one such address in a field. `format_date` and `set_date_header` give dates in RFC 5322 form, for example `Wed, 25 Jun 2014 17:46:00 +0000`. A naive `datetime` is taken as local time.

`set_body` replaces any body that was set before. `add_alternative` adds another part after the existing ones, so add the plain-text version before the HTML version. All three body methods take an `encoding=` keyword that overrides the message's encoding for that part.

To produce a body while the message is written, pass a callable to `add_alternative_writer`. The callable receives a writable stream that accepts `str` or `bytes`.

Attachments and embedded files come from a path (`attach`, `embed`) or from a readable binary stream (`attach_reader`, `embed_reader`). A path is opened only when the message is written. All four methods take these keyword arguments:

- `rename` sets the file name shown in the message.
- `headers` sets or overrides the MIME headers of that part.
- `copy_func` is a callable that writes the content to the stream it is given. It is used in place of reading the file.

When the message is written, missing headers on each file part are filled in: `Content-Type` (guessed from the file extension), `Content-Disposition` and `Content-Transfer-Encoding`. Embedded files also get a `Content-ID`.

```python
m.embed("/tmp/image.jpg")
m.set_body("text/html", '<img src="cid:image.jpg" alt="My image" />')
```

`Message` takes `charset` (default `"UTF-8"`) and `encoding` (default `Encoding.QUOTED_PRINTABLE`). `Encoding` is in `postmark.mimeenc` and has `QUOTED_PRINTABLE`, `BASE64` and `UNENCODED`. With base64, header values use "b" encoded-words. Otherwise they use "q" encoded-words.

```python
from postmark.mimeenc import Encoding

m = Message(charset="ISO-8859-1", encoding=Encoding.BASE64)
```

`reset()` clears the headers, bodies and files. The charset and encoding are kept, so the object can be used again.

## Writing a message out

```python
from datetime import datetime, timezone

raw = m.as_bytes()

with open("message.eml", "wb") as out:
    m.write_to(out)

# A fixed date for a message that has no Date header:
raw = m.as_bytes(datetime(2014, 6, 25, 17, 46, tzinfo=timezone.utc))
```

`write_to` returns the number of bytes written. `postmark.writer.write_message(message, out, date)` does the same thing.

If the message has no `Mime-Version` header, one is added when it is written. The same is true for the `Date` header. The `Bcc` header is never written out.

## Sending

The package does not talk to a mail server itself: there is no SMTP client or connection dialer. You supply the delivery. Any object with a `send(from_addr, to, msg)` method can be used. `msg` is the message, and you can call `msg.write_to(stream)` on it. A plain function can be wrapped with `SendFunc`:

```python
from postmark.send import SendFunc, send

def deliver(from_addr, to, msg):
    print("From:", from_addr)
    print("To:", to)

send(SendFunc(deliver), m)
```

`send(sender, *messages)` sends each message in turn and stops at the first error. The envelope sender comes from the `Sender` header, or from `From` if there is no `Sender` header. To set the envelope sender yourself, use `send_custom_from(sender, "bounces@example.com", m)`.

Recipients are gathered from `To`, `Cc` and `Bcc`, in that order, with duplicates removed. So `Bcc` addresses still receive the message. A message with no sender, or with an address that cannot be parsed, raises `postmark.send.InvalidMessageError`.

The helpers `get_from(message)`, `get_recipients(message)` and `parse_address(field)` can also be called on their own. `Sender` and `SendCloser` are abstract base classes for senders. A `SendCloser` also has `close()` and `reset()`.

## Authentication exchanges

`postmark.auth` has the client side of three SASL mechanisms. Feed these to whatever SMTP connection you drive:

- `LoginAuth(username, password, host)`
- `PlainAuth(identity, username, password, host)`
- `CramMD5Auth(username, secret)`

Each mechanism has two methods:

- `start(server)` takes a `ServerInfo(name, tls, auth)`. It returns the mechanism name and the initial response.
- `next(challenge, more)` answers each challenge from the server.

Errors raise `AuthError`. LOGIN refuses an unencrypted connection unless the server advertises LOGIN. PLAIN refuses one unless the host is localhost. Both refuse a host name that does not match.

```python
from postmark.auth import LoginAuth, ServerInfo

password = "password"
auth = LoginAuth(username="user", password=password, host="smtp.example.com")
mechanism, initial = auth.start(ServerInfo(name="smtp.example.com", tls=True))
auth.next(b"Username:", True)   # b"user"
auth.next(b"Password:", True)   # b"password"
```

## Lower-level encoders

`postmark.mimeenc` has the following encoders:

- `WordEncoder("b" | "q").encode(charset, text)` for RFC 2047 encoded-words. Ready-made instances are `B_ENCODING` and `Q_ENCODING`.
- `QuotedPrintableWriter(out)` is a streaming quoted-printable encoder. Call `close()` on it at the end.

`postmark.writer.Base64LineWriter(out)` folds base64 text into lines of 76 characters.