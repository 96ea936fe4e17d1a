# tatsu

Build, send and read TSS (ticket signing server) requests used to personalize
firmware. Requests, parameters and responses are plain Python dictionaries
holding the same value types as `plistlib`: `bool`, `int`, `bytes`, `str`,
`dict` and `list`. The package needs nothing beyond the standard library.

## Installing

```
pip install .
```

Run the tests with:

```
pip install .[test]
pytest
```

## Building a request

```python
import plistlib

from tatsu.parameters import add_from_manifest
from tatsu.request import new_request, add_common_tags, add_ap_img4_tags, add_ap_tags
from tatsu.client import send_request
from tatsu.response import get_ap_img4_ticket

with open("BuildManifest.plist", "rb") as fh:
    manifest = plistlib.load(fh)
build_identity = manifest["BuildIdentities"][0]

parameters = {
    "ApECID": 0x1234,
    "ApNonce": bytes(32),
    "ApSecurityMode": True,
    "ApProductionMode": True,
    "ApSupportsImg4": True,
}
add_from_manifest(parameters, build_identity, True)

request = new_request(None)
add_common_tags(request, parameters, None)
add_ap_img4_tags(request, parameters)
add_ap_tags(request, parameters, None)

response = send_request(request, None)
ticket = get_ap_img4_ticket(response)
```

All builders change the dictionaries they are given in place. Where a
builder takes `overrides`, that mapping is merged into the request last,
replacing existing keys. A missing required value raises
`tatsu.errors.TSSError`.

`tatsu.parameters.add_from_manifest` copies the identifying values of a build
identity into the parameters and, when `include_manifest` is true, a copy of
its `Manifest` dictionary; the component builders need that manifest.

`tatsu.request` holds the application processor builders: `new_request`,
`add_common_tags`, `add_local_policy_tags`, `add_ap_img4_tags`,
`add_ap_img3_tags`, `add_ap_tags` and `add_ap_recovery_tags`, together with
`apply_restore_request_rules` and `is_fw_payload`, which they use to handle
a manifest entry's `RestoreRequestRules` and firmware-payload flags.

## Other components

`tatsu.coprocessors` builds baseband (`add_baseband_tags`), secure element
(`add_se_tags`), Savage (`add_savage_tags`) and Yonkers (`add_yonkers_tags`)
requests; the last two return the name of the manifest component they chose.

`tatsu.accessories` builds eUICC (`add_vinyl_tags`), Rap (`add_rose_tags`),
BMU (`add_veridian_tags`), Baobab (`add_tcon_tags`), timer
(`add_timer_tags`) and Cryptex1 (`add_cryptex_tags`) requests.

## Sending

`tatsu.client.send_request(request, server_url)` posts the request as an XML
property list and returns the property list in the reply. With `server_url`
set to `None` it rotates through the default signing servers. A reply
without a status code is retried after a two-second pause, up to 15
attempts; a reply with a failure status raises `TSSError` at once, with the
server's status code in its `status` attribute. Server certificates are not
verified.

`tatsu.client.parse_response(body)` does the reply handling on its own, for
a body received some other way.

## Reading responses

`tatsu.response` pulls tickets and blobs from a response:
`get_ap_img4_ticket`, `get_ap_ticket`, `get_baseband_ticket`,
`get_path_by_entry`, `get_blob_by_path` and `get_blob_by_entry`. Each returns
`bytes` (or, for `get_path_by_entry`, a `str`) and raises `TSSError` when
the value is missing.

## Property-list helpers

`tatsu.plistdict` has the small helpers the builders are made of:
`copy_item`, `copy_bool`, `copy_uint`, `copy_data` and `copy_string` copy a
value of the right type and return whether they did; `get_bool`, `get_uint`,
`access_path`, `merge` and `values_equal` read, walk, merge and compare
property-list values.

## Diagnostics

`tatsu.errors.set_debug_level(1)` prints errors and warnings to standard
error; level 2 also prints debug notes and the requests and responses
exchanged. `get_debug_level()` returns the current level.
`tatsu.version.libtatsu_version()` returns the library version.

## What it does not do

This is a library only: there is no command-line tool, and it does not read
build manifests from firmware archives or talk to devices to collect nonces
and identifiers. The caller supplies those values in the parameters.