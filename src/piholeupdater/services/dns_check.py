"""Functional DNS queries against the deployed stack's entry point."""

import time
from typing import Callable, List, Optional, Sequence

import dns.exception
import dns.resolver

from piholeupdater.constants import DEFAULT_DNS_TIMEOUT
from piholeupdater.models import ProbeResult


class DnsCheckService:
    """Issues A queries through the stack using dnspython."""

    def __init__(
        self,
        server: str,
        timeout: float = DEFAULT_DNS_TIMEOUT,
        resolver_factory: Optional[Callable[[], dns.resolver.Resolver]] = None,
    ):
        self.server = server
        self.timeout = timeout
        self.resolver_factory = resolver_factory or self._default_resolver

    def _default_resolver(self) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [self.server]
        resolver.lifetime = self.timeout
        resolver.cache = None
        return resolver

    def resolve(self, domain: str) -> List[str]:
        answer = self.resolver_factory().resolve(domain, "A")
        return [rdata.address for rdata in answer]

    def check_resolution(self, domain: str) -> ProbeResult:
        try:
            addresses = self.resolve(domain)
        except dns.exception.DNSException as exc:
            return ProbeResult(False, f"{domain} via {self.server}: {exc.__class__.__name__}: {exc}")
        if not addresses:
            return ProbeResult(False, f"{domain} via {self.server}: empty answer")
        return ProbeResult(True, f"{domain} -> {', '.join(addresses)}")

    def check_blocked(self, domain: str, sentinels: Sequence[str]) -> ProbeResult:
        try:
            addresses = self.resolve(domain)
        except dns.exception.DNSException as exc:
            return ProbeResult(False, f"{domain} via {self.server}: {exc.__class__.__name__}: {exc}")

        blocked = [address for address in addresses if address in sentinels]
        if blocked:
            return ProbeResult(True, f"{domain} -> {blocked[0]} (blocked)")
        return ProbeResult(False, f"{domain} -> {', '.join(addresses) or 'no address'} (not blocked)")

    def time_query(self, domain: str) -> float:
        """Returns the wall time of one query; failures still count as a sample."""
        started = time.monotonic()
        try:
            self.resolve(domain)
        except dns.exception.DNSException:
            pass
        return time.monotonic() - started
