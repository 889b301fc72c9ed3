"""Mail-server settings autodetection from MX records and a public autoconfig directory."""

from __future__ import annotations

import asyncio
import re
import xml.etree.ElementTree as ET

import httpx
import structlog

from ..config import Settings
from ..errors import AutoconfigError
from ..schemas.wizard import ServerSettings, WizardResponse

logger = structlog.get_logger()

_HREF = re.compile(r"""href=["'](.*?)["']""", re.IGNORECASE)

NOT_FOUND_MSG = "Email provider not found. Please fill the values manually."
FOUND_MSG = "Success, email provider detected."


def parse_provider_index(html: str) -> list[str]:
    """Return the provider domains linked from the directory index page."""
    domains: list[str] = []
    for href in _HREF.findall(html):
        href = href.strip().rstrip("/")
        if href and "." in href and not href.startswith(("?", "/", ".")):
            domains.append(href)
    return domains


def parse_mx_output(output: str) -> list[str]:
    """Return MX hosts from ``dig +short`` output, most preferred first."""
    records: list[tuple[int, str]] = []
    for line in output.splitlines():
        fields = line.split()
        if len(fields) != 2 or not fields[0].isdigit():
            continue
        records.append((int(fields[0]), fields[1].rstrip(".").lower()))
    return [host for _, host in sorted(records, key=lambda r: r[0])]


def match_provider(mx_host: str, providers: list[str]) -> str | None:
    """Longest provider domain contained in *mx_host*."""
    best: str | None = None
    for provider in providers:
        if provider.lower() in mx_host and (best is None or len(provider) > len(best)):
            best = provider
    return best


def _server(element: ET.Element | None) -> ServerSettings | None:
    if element is None:
        return None
    host = element.findtext("hostname")
    port = element.findtext("port")
    if not host or not port or not port.strip().isdigit():
        return None
    return ServerSettings(
        host=host.strip(),
        port=int(port),
        encryption=(element.findtext("socketType") or "plain").strip().lower(),
    )


def parse_client_config(xml_text: str) -> tuple[ServerSettings | None, ServerSettings | None]:
    """Extract the IMAP and SMTP servers from a Thunderbird ``clientConfig`` document."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise AutoconfigError(f"invalid provider configuration: {exc}") from exc

    provider = root.find("emailProvider")
    if provider is None:
        raise AutoconfigError("provider configuration has no emailProvider")

    incoming = provider.find("incomingServer[@type='imap']")
    if incoming is None:
        incoming = provider.find("incomingServer")
    outgoing = provider.find("outgoingServer[@type='smtp']")
    if outgoing is None:
        outgoing = provider.find("outgoingServer")
    return _server(incoming), _server(outgoing)


class AutoconfigClient:
    """Looks up IMAP/SMTP settings for an e-mail address."""

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.autoconfig_url.rstrip("/")
        self._timeout = settings.autoconfig_timeout_seconds
        self._dig = settings.dig_binary
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        logger.info("autoconfig_client_started", base_url=self._base_url)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("autoconfig_client_stopped")

    async def _get(self, url: str) -> str:
        if self._client is None:
            raise AssertionError("Client not started")
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AutoconfigError(f"autoconfig request to {url} failed: {exc}") from exc
        return response.text

    async def provider_domains(self) -> list[str]:
        return parse_provider_index(await self._get(self._base_url))

    async def mx_hosts(self, domain: str) -> list[str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._dig, "+nocmd", domain, "mx", "+short",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise AutoconfigError(f"MX lookup for {domain} failed: {exc}") from exc
        if proc.returncode != 0:
            logger.error("mx_lookup_failed", domain=domain, stderr=stderr.decode(errors="replace"))
            raise AutoconfigError(f"MX lookup for {domain} failed")
        return parse_mx_output(stdout.decode(errors="replace"))

    async def detect(self, email: str) -> WizardResponse:
        _, at, domain = email.strip().rpartition("@")
        if not at or not domain:
            raise AutoconfigError(f"{email!r} is not an e-mail address")

        providers = await self.provider_domains()
        mx = await self.mx_hosts(domain)
        provider = match_provider(mx[0], providers) if mx else None
        logger.info("autoconfig_provider_matched", domain=domain, mx=mx[:1], provider=provider)
        if provider is None:
            return WizardResponse(status=0, msg=NOT_FOUND_MSG)

        imap, smtp = parse_client_config(await self._get(f"{self._base_url}/{provider}"))
        if imap is None:
            return WizardResponse(status=0, msg=NOT_FOUND_MSG)
        return WizardResponse(status=1, msg=FOUND_MSG, imap=imap, smtp=smtp)
