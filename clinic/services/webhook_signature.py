from Crypto.Hash import HMAC, SHA256

SIGNATURE_PREFIX = 'sha256='


class WebhookSignature:
    @staticmethod
    def compute(body: bytes, app_secret: str) -> str:
        mac = HMAC.new(app_secret.encode('utf-8'), digestmod=SHA256)
        mac.update(body)
        return SIGNATURE_PREFIX + mac.hexdigest()

    @staticmethod
    def verify(body: bytes, header: str, app_secret: str) -> bool:
        # header is "sha256=<hex>" as sent in X-Hub-Signature-256
        if not header or not header.startswith(SIGNATURE_PREFIX):
            return False
        mac = HMAC.new(app_secret.encode('utf-8'), digestmod=SHA256)
        mac.update(body)
        try:
            mac.hexverify(header[len(SIGNATURE_PREFIX):])
        except ValueError:
            return False
        return True
