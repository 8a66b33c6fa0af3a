ALLOWED_MIME_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/heic', 'application/pdf')
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
# Hard cap on the whole multipart body; anything above is reported like an oversized file
MAX_REQUEST_BYTES = MAX_UPLOAD_BYTES + 1024 * 1024
