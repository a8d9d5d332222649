"""Single-page viewer served at ``/`` and ``/v/{identifier}``.

The page never talks to the server about keys: it reads ``location.hash``,
fetches ``/api/blob/{identifier}`` and decrypts with WebCrypto. Uploads work
the same way in reverse, so the server only ever sees ciphertext.
"""

from __future__ import annotations

from html import escape

VIEWER_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="robots" content="noindex">
  <title>vanish</title>
  <style>
    :root { --bg: #0a0a0a; --fg: #e5e5e5; --dim: #737373; --accent: #22c55e; --err: #ef4444; }
    body { font-family: ui-monospace, monospace; background: var(--bg); color: var(--fg);
           margin: 0; padding: 2rem; }
    main { max-width: 56rem; margin: 0 auto; }
    h1 { color: var(--accent); font-size: 1.25rem; }
    textarea { width: 100%; min-height: 12rem; background: #111; color: var(--fg);
               border: 1px solid #262626; padding: 0.75rem; font: inherit; }
    button, select { background: #111; color: var(--fg); border: 1px solid #262626;
                     padding: 0.4rem 0.8rem; font: inherit; cursor: pointer; }
    pre { white-space: pre-wrap; word-break: break-word; background: #111; padding: 1rem; }
    img, video, audio { max-width: 100%; }
    .dim { color: var(--dim); }
    .err { color: var(--err); }
    .hidden { display: none; }
    #share-url { word-break: break-all; color: var(--accent); }
  </style>
</head>
<body>
<main>
  <h1>vanish</h1>
  <p class="dim">Encrypted in your browser. The key lives in the link fragment and never reaches the server.</p>

  <section id="composer">
    <textarea id="input" placeholder="Paste text to share"></textarea>
    <p>
      <input type="file" id="file">
      <select id="ttl">
        <option value="1">1 hour</option>
        <option value="24" selected>24 hours</option>
        <option value="168">7 days</option>
      </select>
      <button id="share">Encrypt &amp; share</button>
    </p>
    <p id="share-url"></p>
  </section>

  <section id="viewer" class="hidden">
    <p id="status" class="dim">Fetching ciphertext...</p>
    <div id="content"></div>
  </section>
</main>
<script>
  const MAX_TTL_HOURS = __MAX_TTL_HOURS__;

  function hexToBytes(hex) {
    const out = new Uint8Array(hex.length / 2);
    for (let i = 0; i < out.length; i++) out[i] = parseInt(hex.substr(i * 2, 2), 16);
    return out;
  }

  function b64urlEncode(bytes) {
    let s = '';
    bytes.forEach(b => { s += String.fromCharCode(b); });
    return btoa(s).replace(/\\+/g, '-').replace(/\\//g, '_').replace(/=+$/, '');
  }

  function b64urlDecode(text) {
    const padded = text.replace(/-/g, '+').replace(/_/g, '/') + '='.repeat((4 - text.length % 4) % 4);
    const raw = atob(padded);
    const out = new Uint8Array(raw.length);
    for (let i = 0; i < raw.length; i++) out[i] = raw.charCodeAt(i);
    return out;
  }

  function parseSecret(secret) {
    if (secret.length === 64 && secret.indexOf('k=') === -1 && /^[A-Za-z0-9_-]+$/.test(secret)) {
      const raw = b64urlDecode(secret);
      if (raw.length === 48) return { key: raw.slice(0, 32), iv: raw.slice(32) };
    }
    const params = new URLSearchParams(secret);
    const k = params.get('k') || '';
    const iv = params.get('iv') || '';
    if (!/^[0-9a-fA-F]{64}$/.test(k)) throw new Error('Invalid key in link');
    if (!/^[0-9a-fA-F]{32}$/.test(iv)) throw new Error('Invalid IV in link');
    return { key: hexToBytes(k), iv: hexToBytes(iv) };
  }

  function looksBinary(bytes) {
    const n = Math.min(bytes.length, 1024);
    for (let i = 0; i < n; i++) if (bytes[i] === 0) return true;
    return false;
  }

  function render(bytes) {
    const content = document.getElementById('content');
    if (looksBinary(bytes)) {
      const url = URL.createObjectURL(new Blob([bytes]));
      const link = document.createElement('a');
      link.href = url;
      link.download = 'vanish.bin';
      link.textContent = 'Download decrypted file (' + bytes.length + ' bytes)';
      content.appendChild(link);
      return;
    }
    const pre = document.createElement('pre');
    pre.textContent = new TextDecoder().decode(bytes);
    content.appendChild(pre);
  }

  async function openShare(identifier, secret) {
    document.getElementById('composer').classList.add('hidden');
    document.getElementById('viewer').classList.remove('hidden');
    const status = document.getElementById('status');
    try {
      const { key, iv } = parseSecret(secret);
      // A proof held by the recipient rides in the query; the key stays in the fragment.
      const proof = new URLSearchParams(location.search).get('paymentProof');
      const query = proof ? '?paymentProof=' + encodeURIComponent(proof) : '';
      const res = await fetch('/api/blob/' + encodeURIComponent(identifier) + query);
      if (res.status === 404) throw new Error('Link not found or already expired.');
      if (res.status === 410) throw new Error('This link has expired.');
      if (res.status === 402) {
        throw new Error('Payment required: ' + res.headers.get('X-Payment-Price') + ' ' +
                        res.headers.get('X-Payment-Currency'));
      }
      if (!res.ok) throw new Error('Server error (' + res.status + ').');
      const ciphertext = await res.arrayBuffer();
      const cryptoKey = await crypto.subtle.importKey('raw', key, { name: 'AES-CBC' }, false, ['decrypt']);
      let plain;
      try {
        plain = await crypto.subtle.decrypt({ name: 'AES-CBC', iv }, cryptoKey, ciphertext);
      } catch (e) {
        throw new Error('Decryption failed: wrong key or corrupted data.');
      }
      const expires = res.headers.get('X-Blob-Expires');
      status.textContent = expires ? 'Expires ' + new Date(expires).toLocaleString() : '';
      render(new Uint8Array(plain));
    } catch (e) {
      status.className = 'err';
      status.textContent = e.message;
    }
  }

  async function share(plaintext) {
    const key = crypto.getRandomValues(new Uint8Array(32));
    const iv = crypto.getRandomValues(new Uint8Array(16));
    const cryptoKey = await crypto.subtle.importKey('raw', key, { name: 'AES-CBC' }, false, ['encrypt']);
    const ciphertext = await crypto.subtle.encrypt({ name: 'AES-CBC', iv }, cryptoKey, plaintext);
    const ttl = Math.min(parseInt(document.getElementById('ttl').value, 10), MAX_TTL_HOURS);
    const res = await fetch('/api/drop?ttl=' + ttl, {
      method: 'POST',
      headers: { 'Content-Type': 'application/octet-stream' },
      body: ciphertext,
    });
    const body = await res.json();
    if (!res.ok) throw new Error(body.message || body.error);
    const secret = new Uint8Array(48);
    secret.set(key, 0);
    secret.set(iv, 32);
    return location.origin + '/v/' + body.identifier + '#' + b64urlEncode(secret);
  }

  document.getElementById('share').addEventListener('click', async () => {
    const out = document.getElementById('share-url');
    const file = document.getElementById('file').files[0];
    try {
      const plaintext = file
        ? new Uint8Array(await file.arrayBuffer())
        : new TextEncoder().encode(document.getElementById('input').value);
      if (!plaintext.length) return;
      out.className = '';
      out.textContent = await share(plaintext);
    } catch (e) {
      out.className = 'err';
      out.textContent = e.message;
    }
  });

  const match = location.pathname.match(/^\\/v\\/([A-Za-z0-9-]+)$/);
  if (match && location.hash.length > 1) openShare(match[1], location.hash.slice(1));
  else if (match) {
    document.getElementById('composer').classList.add('hidden');
    document.getElementById('viewer').classList.remove('hidden');
    const status = document.getElementById('status');
    status.className = 'err';
    status.textContent = 'This link is missing its decryption key (the part after #).';
  }
</script>
</body>
</html>"""


def render_viewer(*, max_ttl_hours: int) -> str:
    return VIEWER_TEMPLATE.replace("__MAX_TTL_HOURS__", escape(str(int(max_ttl_hours))))
