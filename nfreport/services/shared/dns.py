"""DNS resolution utilities."""
import threading

import dns.exception
import dns.resolver
import dns.reversename

from nfreport.services.shared.metrics import track_dns_lookup
from nfreport.services.shared.observability import get_logger

_logger = get_logger("dns")


def make_resolver(nameserver=None, timeout=2.0):
    """Build a dnspython resolver, pinned to ``nameserver`` when one is given."""
    if nameserver:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [nameserver]
    else:
        resolver = dns.resolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout
    return resolver


class HostnameCache:
    """Reverse-DNS cache scoped to a single report render.

    Successes and failures are both cached (a failure caches the address
    itself), so no address is looked up twice. Safe to share between the
    bucket workers of one report; the first value stored for an address wins.
    """

    def __init__(self, resolver=None, nameserver=None, timeout=2.0):
        self._resolver = resolver
        self._nameserver = nameserver
        self._timeout = timeout
        self._names = {}
        self._lock = threading.Lock()
        self.lookups = 0

    def __contains__(self, ip):
        with self._lock:
            return ip in self._names

    def __len__(self):
        with self._lock:
            return len(self._names)

    def _get_resolver(self):
        if self._resolver is None:
            self._resolver = make_resolver(self._nameserver, self._timeout)
        return self._resolver

    def _lookup(self, ip):
        with self._lock:
            self.lookups += 1
        track_dns_lookup()
        try:
            rev_name = dns.reversename.from_address(ip)
            answer = self._get_resolver().resolve(rev_name, "PTR")
            return str(answer[0]).rstrip(".")
        except (dns.exception.DNSException, ValueError) as e:
            _logger.debug(f"Reverse lookup of {ip} failed: {e}")
            return ip

    def resolve(self, ip):
        """Return the hostname for ``ip``, or ``ip`` when it has none."""
        with self._lock:
            if ip in self._names:
                return self._names[ip]
        hostname = self._lookup(ip)
        with self._lock:
            return self._names.setdefault(ip, hostname)

    def resolve_many(self, ips):
        return {ip: self.resolve(ip) for ip in ips}

    def clear(self):
        with self._lock:
            self._names.clear()
