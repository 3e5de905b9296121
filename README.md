# eh2telegraph

A Telegram bot that copies image galleries to Telegraph pages, so they can be
read directly inside Telegram.

Send the bot a gallery link (as a `/sync` command, as plain text, as a text
link or in a photo caption) and it replies "Syncing url ...", then edits that
reply into the link of a freshly created Telegraph page, or into the reason
the sync failed. Send it a picture and it looks the picture up with SauceNAO,
finds the matching gallery and syncs that one instead. In private chats the
similarity threshold for picture search is lower (50%) than in groups (70%).

Supported gallery hosts: e-hentai.org, exhentai.org, nhentai.net and
nhentai.to (nhentai galleries are read through the nhentai.xxx mirror).

## Installation

```
pip install .
```

For development and tests:

```
pip install ".[test]"
pytest
```

## Configuration

The bot reads a YAML file. Its path is taken from `--config`, otherwise from
the `CONFIG_FILE` environment variable, otherwise `config.yaml` in the working
directory.

```yaml
base:
  bot_token: token
  admins: [123456]
  telegraph:
    tokens:
      - token
    author_name: My Gallery Bot
    author_url: https://example.com

# optional: bind outgoing requests to a random address in this IPv6 prefix
http:
  ipv6_prefix: "2001:db8::/48"

# optional: route requests through a forwarding proxy
proxy:
  endpoint: https://proxy.example.com/
  authorization: token

# required: the bot does not start without it
exhentai:
  ipb_pass_hash: placeholder
  ipb_member_id: placeholder
  igneous: placeholder
```

Several Telegraph tokens may be given; one is picked at random for each
request. The author name and URL are set on created pages only when
`author_name` is given. Chats whose ids are listed under `admins` may use
admin commands.

## Running

```
eh2telegraph-bot --config config.yaml
```

`eh2telegraph-bot --version` prints the package, Python and platform versions.

The bot polls the Bot API for new messages and sends its replies as
MarkdownV2. Messages older than one day at start-up are ignored. If the bot
loses the permission to send messages in a chat, it leaves that chat.

## Commands

| Command        | Effect                                           |
|----------------|--------------------------------------------------|
| `/help`        | show the help text                               |
| `/version`     | show version information                         |
| `/id`          | show the id of the current chat                  |
| `/sync <url>`  | sync a gallery to Telegraph                      |
| `/delete <key>`| admins only: drop a cached result                |

Finished syncs are remembered under keys of the form `<collector>|<path>`,
for example `e-hentai|/g/2127986/da1deffea5`, so asking for the same gallery
again returns the existing page. Requests for a URL that is already being
synced share the running sync.

## Using the library

The pieces the bot is built from can be used on their own:

```python
from eh2telegraph.sync import Synchronizer
from eh2telegraph.saucenao import parse_output
from eh2telegraph.telegraph_types import new_p_text, node_to_json

url = Synchronizer.match_url_from_text("look at https://nhentai.net/g/333678 please")
# -> "https://nhentai.net/g/333678"

node = node_to_json(new_p_text("hello"))
# -> {"tag": "P", "children": ["hello"]}
```

- `eh2telegraph.sync.Synchronizer.sync(collector_type, path)` downloads a
  gallery through one of the collectors (`EHCollector` in
  `eh2telegraph.e_hentai`, `EXCollector` in `eh2telegraph.exhentai`,
  `NHCollector` in `eh2telegraph.nhentai`), uploads the images to Telegraph
  in batches of more than 20 images or 5 MiB, skips files of 5 MiB or more,
  gives up after more than 10 failed downloads in a row, and returns the URL
  of the created page.
- `eh2telegraph.telegraph.Telegraph` creates, edits and reads pages and
  uploads files.
- `eh2telegraph.saucenao.SaucenaoSearcher` runs a reverse image search;
  `parse_output` parses a SauceNAO result page, most similar first.
- `eh2telegraph.f_hash.FHashConvertor` turns an image f-hash into a gallery
  URL on e-hentai or exhentai.
- `eh2telegraph.storage` provides `SimpleMemStorage` and `LruStorage`.
- `eh2telegraph.http_client.GhostClient` and
  `eh2telegraph.http_proxy.ProxiedClient` are the HTTP clients used
  throughout.

## Limitations

- The result cache lives in memory only (`SimpleMemStorage`): it is lost when
  the bot stops, and cache expiry times are not enforced. There is no
  persistent or shared storage backend.
- `eh2telegraph.indexer` only defines filter and ordering types; there is no
  gallery indexer or search listing.
- There is no webhook mode; updates are received by long polling only.