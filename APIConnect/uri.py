from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote, urlsplit

# RFC 3986 host characters: unreserved, sub-delims, ":" and the IP-literal brackets.
_HOST_SAFE = "!$&'()*+,;=:[]"

_COMPONENTS = ("scheme", "host", "port", "path", "query", "fragment")


class Scheme:
    """Well known URI schemes."""
    HTTP = "http"
    HTTPS = "https"
    # The socket path goes in the host, percent-encoded; from_components does that.
    HTTP_UNIX = "http+unix"
    HTTPS_UNIX = "https+unix"


def encode_host(host: str) -> str:
    return quote(host, safe=_HOST_SAFE)


def _compose(scheme: Optional[str], host: Optional[str], port: Optional[int], path: str,
             query: Optional[str], fragment: Optional[str], encode: bool = True) -> str:
    string = ""
    if scheme:
        string += scheme + ":"
    if host or port is not None:
        string += "//"
    if host:
        string += encode_host(host) if encode else host
    if port is not None:
        string += ":" + str(int(port))
    if path.startswith("/"):
        string += path
    else:
        string += "/" + path
    if query:
        string += "?" + query
    if fragment:
        string += "#" + fragment
    return string


@dataclass(frozen=True)
class URI:
    """A URI held as a single authoritative string.

    Components are parsed from the string on access. "Setting" a component
    goes through `replace`, which rebuilds the whole string from every
    current component.
    """

    string: str = "/"

    @classmethod
    def from_components(cls, scheme: Optional[str] = None, host: Optional[str] = None,
                        port: Optional[int] = None, path: str = "/", query: Optional[str] = None,
                        fragment: Optional[str] = None) -> "URI":
        """Compose a URI, percent-encoding `host` for the URL host grammar."""
        return cls(_compose(scheme, host, port, path, query, fragment))

    def replace(self, **changes: Any) -> "URI":
        """Return a copy with the given components replaced.

        Only a newly supplied host is percent-encoded; the host already in the
        string is reused as is.
        """
        unknown = set(changes) - set(_COMPONENTS)
        if unknown:
            raise TypeError(f"Unknown URI components: {', '.join(sorted(unknown))}")

        parts = {name: getattr(self, name) for name in _COMPONENTS}
        if "host" in changes and changes["host"]:
            changes = dict(changes, host=encode_host(changes["host"]))
        parts.update(changes)
        return URI(_compose(encode=False, **parts))

    # Parsing
    def _split(self):
        return urlsplit(self.string)

    def _authority(self):
        netloc = self._split().netloc
        hostport = netloc.rpartition("@")[2]
        if hostport.startswith("["):
            end = hostport.find("]")
            if end != -1:
                return hostport[:end + 1], hostport[end + 2:] if hostport[end + 1:end + 2] == ":" else ""
        host, sep, port = hostport.rpartition(":")
        if not sep:
            return hostport, ""
        return host, port

    @property
    def scheme(self) -> Optional[str]:
        return self._split().scheme or None

    @property
    def host(self) -> Optional[str]:
        return self._authority()[0] or None

    @property
    def port(self) -> Optional[int]:
        port = self._authority()[1]
        try:
            return int(port) if port else None
        except ValueError:
            return None

    @property
    def path(self) -> str:
        return self._split().path

    @property
    def query(self) -> Optional[str]:
        return self._split().query or None

    @property
    def fragment(self) -> Optional[str]:
        return self._split().fragment or None

    @property
    def is_absolute(self) -> bool:
        return self.scheme is not None and self.host is not None

    def __str__(self) -> str:
        return self.string
