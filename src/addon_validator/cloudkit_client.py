from __future__ import annotations
import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .catalog import Asset, Record, Reference, SavePolicy
from .errors import CatalogError, RecordNotFoundError


log = logging.getLogger(__name__)

API_ROOT = "https://api.apple-cloudkit.com"
ASSET_FILENAME = "asset"

OPERATION_TYPES = {
    SavePolicy.ALL_KEYS: "forceReplace",
    SavePolicy.CHANGED_KEYS: "forceUpdate",
}


@dataclass
class CloudKitConfig:
    container: str
    environment: str = "production"
    database: str = "public"
    api_token: Optional[str] = None
    key_id: Optional[str] = None
    key_file: Optional[str] = None
    timeout: int = 60

    @property
    def uses_server_key(self) -> bool:
        return bool(self.key_id and self.key_file)

    def subpath(self, operation: str) -> str:
        return f"/database/1/{self.container}/{self.environment}/{self.database}/{operation}"


def build_session(cfg: CloudKitConfig) -> requests.Session:
    s = requests.Session()
    s.headers.update(
        {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "celestia-addon-validator/1.0",
        }
    )
    log.debug(f"Session for container={cfg.container} environment={cfg.environment}")
    return s


# --------------------------------------------
# Authentication
# --------------------------------------------

@lru_cache(maxsize=4)
def _load_private_key(key_file: str) -> ec.EllipticCurvePrivateKey:
    key = serialization.load_pem_private_key(Path(key_file).read_bytes(), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise CatalogError(f"Server key must be an EC private key: {key_file}")
    return key


def sign_request(cfg: CloudKitConfig, subpath: str, body: bytes, now: Optional[datetime] = None) -> Dict[str, str]:
    """Server-to-server signature headers for one request.

    The signed message is `date:base64(sha256(body)):subpath`.
    """
    date = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    body_hash = base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")
    message = f"{date}:{body_hash}:{subpath}".encode("utf-8")
    signature = _load_private_key(cfg.key_file).sign(message, ec.ECDSA(hashes.SHA256()))
    return {
        "X-Apple-CloudKit-Request-KeyID": cfg.key_id or "",
        "X-Apple-CloudKit-Request-ISO8601Date": date,
        "X-Apple-CloudKit-Request-SignatureV1": base64.b64encode(signature).decode("ascii"),
    }


def _post(session: requests.Session, cfg: CloudKitConfig, operation: str, payload: Dict) -> Dict:
    subpath = cfg.subpath(operation)
    body = json.dumps(payload).encode("utf-8")
    params: Dict[str, str] = {}
    headers: Dict[str, str] = {}
    if cfg.uses_server_key:
        headers.update(sign_request(cfg, subpath, body))
    elif cfg.api_token:
        params["ckAPIToken"] = cfg.api_token
    try:
        resp = session.post(API_ROOT + subpath, data=body, params=params, headers=headers, timeout=cfg.timeout)
    except requests.RequestException as e:
        raise CatalogError(f"{operation}: {e}")
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        raise CatalogError(f"{operation}: {resp.status_code}: {detail}")
    log.debug(f"POST {subpath} -> {resp.status_code}")
    return resp.json()


# --------------------------------------------
# Field encoding
# --------------------------------------------

def encode_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"value": None}
    if isinstance(value, bool):
        return {"value": int(value), "type": "INT64"}
    if isinstance(value, str):
        return {"value": value, "type": "STRING"}
    if isinstance(value, Reference):
        return {"value": {"recordName": value.record_name, "action": "NONE"}, "type": "REFERENCE"}
    if isinstance(value, datetime):
        return {"value": int(value.timestamp() * 1000), "type": "TIMESTAMP"}
    if isinstance(value, (bytes, bytearray)):
        return {"value": base64.b64encode(bytes(value)).decode("ascii"), "type": "BYTES"}
    if isinstance(value, Asset):
        if value.receipt is None:
            raise CatalogError(f"Asset was not uploaded: {value.uri}")
        return {"value": value.receipt, "type": "ASSETID"}
    if isinstance(value, int):
        return {"value": value, "type": "INT64"}
    if isinstance(value, float):
        return {"value": value, "type": "DOUBLE"}
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(v, Asset) for v in value):
            return {"value": [encode_value(v)["value"] for v in value], "type": "ASSETID_LIST"}
        if all(isinstance(v, str) for v in value):
            return {"value": list(value), "type": "STRING_LIST"}
    raise TypeError(f"Unsupported field value: {value!r}")


def _decode_asset(value: Dict) -> Asset:
    url = value.get("downloadURL")
    if url:
        url = url.replace("${f}", ASSET_FILENAME)
    return Asset(download_url=url, receipt=value)


def decode_field(field: Dict[str, Any]) -> Any:
    kind = field.get("type")
    value = field.get("value")
    if value is None:
        return None
    if kind == "TIMESTAMP":
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if kind == "REFERENCE":
        return Reference(value["recordName"])
    if kind == "REFERENCE_LIST":
        return [Reference(v["recordName"]) for v in value]
    if kind == "ASSETID":
        return _decode_asset(value)
    if kind == "ASSETID_LIST":
        return [_decode_asset(v) for v in value]
    if kind == "BYTES":
        return base64.b64decode(value)
    return value


def decode_record(data: Dict[str, Any]) -> Record:
    fields = {key: decode_field(f) for key, f in (data.get("fields") or {}).items()}
    return Record(
        record_type=data.get("recordType", ""),
        record_name=data["recordName"],
        fields=fields,
    )


# --------------------------------------------
# Records and assets
# --------------------------------------------

def lookup_record(session: requests.Session, cfg: CloudKitConfig, record_name: str) -> Record:
    data = _post(session, cfg, "records/lookup", {"records": [{"recordName": record_name}]})
    records = data.get("records") or []
    if not records:
        raise RecordNotFoundError(record_name)
    found = records[0]
    error = found.get("serverErrorCode")
    if error == "NOT_FOUND":
        raise RecordNotFoundError(record_name)
    if error:
        raise CatalogError(f"lookup {record_name}: {error} {found.get('reason', '')}".strip())
    return decode_record(found)


def request_upload_urls(
    session: requests.Session, cfg: CloudKitConfig, record: Record, field_name: str, count: int
) -> List[str]:
    token = {"recordType": record.record_type, "recordName": record.record_name, "fieldName": field_name}
    data = _post(session, cfg, "assets/upload", {"tokens": [dict(token) for _ in range(count)]})
    urls = [t.get("url") for t in (data.get("tokens") or []) if t.get("url")]
    if len(urls) != count:
        raise CatalogError(f"assets/upload returned {len(urls)} upload URL(s) for {count} asset(s)")
    return urls


def upload_asset_file(session: requests.Session, cfg: CloudKitConfig, url: str, path: Path) -> Dict[str, Any]:
    try:
        resp = session.post(
            url,
            data=Path(path).read_bytes(),
            headers={"Content-Type": "application/octet-stream"},
            timeout=cfg.timeout,
        )
    except requests.RequestException as e:
        raise CatalogError(f"asset upload: {e}")
    if not resp.ok:
        raise CatalogError(f"asset upload: {resp.status_code}: {resp.text}")
    receipt = (resp.json() or {}).get("singleFile")
    if not receipt:
        raise CatalogError("asset upload: no receipt returned")
    return receipt


def modify_record(
    session: requests.Session, cfg: CloudKitConfig, record: Record, fields: Dict[str, Any], policy: SavePolicy
) -> Optional[Record]:
    payload = {
        "operations": [
            {
                "operationType": OPERATION_TYPES[policy],
                "record": {
                    "recordType": record.record_type,
                    "recordName": record.record_name,
                    "fields": {key: encode_value(value) for key, value in fields.items()},
                },
            }
        ]
    }
    data = _post(session, cfg, "records/modify", payload)
    records = data.get("records") or []
    if not records:
        return None
    saved = records[0]
    if saved.get("serverErrorCode"):
        raise CatalogError(f"modify {record.record_name}: {saved['serverErrorCode']} {saved.get('reason', '')}".strip())
    return decode_record(saved)


class CloudKitDatabase:
    """`CatalogClient` backed by CloudKit Web Services."""

    def __init__(self, session: requests.Session, cfg: CloudKitConfig) -> None:
        self.session = session
        self.cfg = cfg

    def fetch_record(self, record_name: str) -> Record:
        return lookup_record(self.session, self.cfg, record_name)

    def _upload_assets(self, record: Record, field_name: str, value: Any) -> Any:
        if isinstance(value, Asset) and value.receipt is None:
            (url,) = request_upload_urls(self.session, self.cfg, record, field_name, 1)
            return Asset(path=value.path, receipt=upload_asset_file(self.session, self.cfg, url, value.path))
        if isinstance(value, list) and value and all(isinstance(v, Asset) for v in value):
            pending = [v for v in value if v.receipt is None]
            if not pending:
                return value
            urls = iter(request_upload_urls(self.session, self.cfg, record, field_name, len(pending)))
            uploaded = []
            for asset in value:
                if asset.receipt is None:
                    receipt = upload_asset_file(self.session, self.cfg, next(urls), asset.path)
                    asset = Asset(path=asset.path, receipt=receipt)
                uploaded.append(asset)
            return uploaded
        return value

    def save_record(self, record: Record, policy: SavePolicy) -> Optional[Record]:
        keys = list(record) if policy is SavePolicy.ALL_KEYS else record.changed_keys
        fields = {}
        for key in keys:
            value = record[key]
            if value is None and policy is SavePolicy.ALL_KEYS:
                # a replaced record simply omits empty attributes
                continue
            fields[key] = self._upload_assets(record, key, value)
        log.info(f"Saving {record.record_type} {record.record_name} policy={policy.value} keys={sorted(fields)}")
        return modify_record(self.session, self.cfg, record, fields, policy)
