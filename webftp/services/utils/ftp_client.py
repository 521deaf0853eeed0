import ftplib
import logging
import ssl
from typing import Optional

logger = logging.getLogger(__name__)

TLS_EXPLICIT = "explicit"
TLS_IMPLICIT = "implicit"


def build_ssl_context(verify_certificate: bool = False) -> ssl.SSLContext:
	context = ssl.create_default_context()
	if not verify_certificate:
		context.check_hostname = False
		context.verify_mode = ssl.CERT_NONE
	return context


class _SessionReuseMixin:
	"""
	Wrap data channels with the control channel's TLS session.
	Servers such as vsftpd (require_ssl_reuse) and FileZilla reject data
	connections that open a fresh session.
	"""

	def ntransfercmd(self, cmd, rest=None):
		conn, size = ftplib.FTP.ntransfercmd(self, cmd, rest)
		if self._prot_p:
			session = None
			if isinstance(self.sock, ssl.SSLSocket):
				session = getattr(self.sock, "session", None)
			conn = self.context.wrap_socket(conn, server_hostname=self.host, session=session)
		return conn, size


class ExplicitFTP_TLS(_SessionReuseMixin, ftplib.FTP_TLS):
	"""FTP_TLS upgraded with AUTH TLS after connecting."""


class ImplicitFTP_TLS(_SessionReuseMixin, ftplib.FTP_TLS):
	"""
	FTP_TLS subclass for implicit FTPS (usually port 990): the control socket
	is wrapped as soon as it is assigned, before the greeting is read.
	"""

	def __init__(self, *args, **kwargs):
		self._ssl_sock: Optional[ssl.SSLSocket] = None
		super().__init__(*args, **kwargs)

	@property
	def sock(self):
		return self._ssl_sock

	@sock.setter
	def sock(self, value):
		if value is not None and not isinstance(value, ssl.SSLSocket):
			value = self.context.wrap_socket(value, server_hostname=self.host)
		self._ssl_sock = value


def create_ftp_client(
	*,
	use_tls: bool = False,
	tls_mode: str = TLS_EXPLICIT,
	verify_certificate: bool = False,
	timeout: Optional[float] = None,
) -> ftplib.FTP:
	"""Build an unconnected ftplib client for the requested transport."""
	kwargs = {}
	if timeout is not None:
		kwargs["timeout"] = timeout
	if not use_tls:
		return ftplib.FTP(**kwargs)
	context = build_ssl_context(verify_certificate)
	if tls_mode == TLS_IMPLICIT:
		return ImplicitFTP_TLS(context=context, **kwargs)
	if tls_mode != TLS_EXPLICIT:
		raise ValueError(f"Unknown TLS mode: {tls_mode}")
	return ExplicitFTP_TLS(context=context, **kwargs)
