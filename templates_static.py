"""Templates and static file generation."""

from pathlib import Path

# Template content
BASE_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{{ title or 'Origami Feed' }}</title>
  <link rel="stylesheet" href="/static/app.css">
</head>
<body>
  <header class="topbar">
    <nav>
      <a href="/" class="brand">Origami Feed</a>
      {% if workspace %}
      <a href="/w/{{ workspace }}">{{ workspace }}</a>
      <a href="/w/{{ workspace }}/upload" class="upload-btn">Upload</a>
      {% endif %}
    </nav>
  </header>
  <main class="container">
    {% block content %}{% endblock %}
  </main>
</body>
</html>
"""

INDEX_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Workspaces</h1>
<form class="filters" method="get" action="/w/">
  <input name="name" placeholder="Open or create a workspace…" />
  <button>Go</button>
</form>
<table class="tbl">
  <tr><th>Workspace</th><th>Images</th></tr>
  {% for name, count in stats.items() %}
  <tr><td><a href="/w/{{ name }}">{{ name }}</a></td><td>{{ count }}</td></tr>
  {% else %}
  <tr><td colspan="2" class="muted">Nothing uploaded yet.</td></tr>
  {% endfor %}
</table>
{% endblock %}
"""

GALLERY_HTML = """{% extends 'base.html' %}
{% block content %}
<div class="controls">
  <div class="chips">
    <a href="/w/{{ workspace }}{% if tag %}?tag={{ tag }}{% endif %}" class="pill {% if sort != 'recent' %}active{% endif %}">Newest</a>
    <a href="/w/{{ workspace }}?sort=recent{% if tag %}&tag={{ tag }}{% endif %}" class="pill {% if sort == 'recent' %}active{% endif %}">Recent Activity</a>
  </div>
  <div class="chips">
    <a href="/w/{{ workspace }}?sort={{ sort }}" class="pill {% if not tag %}active{% endif %}">All</a>
    {% for t in tags %}
    <a href="/w/{{ workspace }}?sort={{ sort }}&tag={{ t | urlencode }}" class="pill {% if t == tag %}active{% endif %}">#{{ t }}</a>
    {% endfor %}
  </div>
</div>
<div class="grid" id="feed" data-workspace="{{ workspace }}" data-offset="{{ page.next_offset }}"
     data-sort="{{ sort }}" data-tag="{{ tag or '' }}" data-limit="{{ limit }}">
  {% for img in page.items %}
  <div class="card">
    <img src="/origami/thumbnail/{{ img.hash }}" loading="lazy" alt="">
    <div class="meta">
      <div class="chips">{% for t in img.tags.split(', ') if t %}<span class="chip">#{{ t }}</span>{% endfor %}</div>
      <div class="kv muted"><span>♥ {{ img.likes }}</span><span>↗ {{ img.shares }}</span></div>
    </div>
  </div>
  {% else %}
  <p class="muted">No images in this workspace yet.</p>
  {% endfor %}
</div>
{% if not page.exhausted %}
<div class="pager"><button id="more">Load more</button></div>
<script src="/static/feed.js"></script>
{% endif %}
{% endblock %}
"""

UPLOAD_HTML = """{% extends 'base.html' %}
{% block content %}
<h1>Upload to {{ workspace }}</h1>
<form class="settings" method="post" action="/origami/form" enctype="multipart/form-data">
  <input type="hidden" name="workspace" value="{{ workspace }}">
  <label>Images</label>
  <input type="file" name="file" accept="image/*" multiple required>
  <label>Filter</label>
  <select name="filterClass">
    <option value="">— None —</option>
    {% for f in filters %}<option value="{{ f }}">{{ f }}</option>{% endfor %}
  </select>
  <label>Or a filter description</label>
  <textarea name="filter" rows="3" placeholder='[{"filter": "grayscale"}, {"filter": "contrast", "factor": 1.4}]'></textarea>
  <label>Tags</label>
  <input name="tags" list="known-tags" placeholder="beach, summer">
  <datalist id="known-tags">{% for t in tags %}<option value="{{ t }}">{% endfor %}</datalist>
  <button>Upload</button>
</form>
{% endblock %}
"""

FEED_JS = """(function(){
  const feed = document.getElementById('feed');
  const more = document.getElementById('more');
  if(!feed || !more) return;
  more.addEventListener('click', async function(){
    const d = feed.dataset;
    const q = new URLSearchParams({workspace: d.workspace, offset: d.offset, limit: d.limit, sort: d.sort});
    if(d.tag) q.set('tag', d.tag);
    const res = await fetch('/origami/list?' + q.toString());
    const items = res.ok ? await res.json() : [];
    if(!items.length){ more.remove(); return; }
    for(const img of items){
      const card = document.createElement('div');
      card.className = 'card';
      card.innerHTML = '<img loading="lazy" alt="" src="/origami/thumbnail/' + img.hash + '">';
      feed.appendChild(card);
    }
    d.offset = String(parseInt(d.offset, 10) + items.length);
  });
})();
"""

APP_CSS = """:root{--bg:#0f1115;--fg:#e5e7eb;--muted:#a1a1aa;--card:#111318;--chip:#2a2e37;--brand:#7aa2ff}
*{box-sizing:border-box}body{margin:0;background:var(--bg);color:var(--fg);font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Helvetica,Arial}
a{color:var(--brand);text-decoration:none}.muted{color:var(--muted)}
.topbar{position:sticky;top:0;background:#0c0e13;border-bottom:1px solid #1c1f26;z-index:10}
.topbar nav{margin:auto;display:flex;gap:14px;align-items:center;padding:10px}
.topbar .brand{font-weight:700}.upload-btn{margin-left:auto}
.container{margin:20px auto;padding:0 14px;max-width:1100px}
.grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(260px,1fr));gap:14px}
.card{background:var(--card);border:1px solid #1f2430;border-radius:12px;overflow:hidden;display:flex;flex-direction:column}
.card img{width:100%;height:300px;object-fit:cover;display:block;background:#090a0d}
.card .meta{padding:10px;display:flex;flex-direction:column;gap:8px}
.chips{display:flex;flex-wrap:wrap;gap:6px}.chip{background:var(--chip);border-radius:999px;padding:2px 8px}
.pill{border-radius:999px;border:1px solid #2d3341;background:#1a1d24;color:var(--fg);padding:2px 10px}
.pill.active{border-color:var(--brand)}
.controls{display:flex;flex-direction:column;gap:12px;margin-bottom:20px}
.filters{display:flex;align-items:center;gap:10px;margin-bottom:10px}
.tbl{width:100%;border-collapse:collapse}.tbl th,.tbl td{border-bottom:1px solid #252a36;padding:8px;text-align:left}
.kv{display:flex;justify-content:space-between;gap:12px}
.pager{display:flex;justify-content:center;margin:16px}
.settings{display:grid;gap:10px;max-width:720px}
button{cursor:pointer;background:#1e2635;border:1px solid #2f3748;color:var(--fg);padding:6px 12px;border-radius:8px}
input,select,textarea{background:#0e1218;border:1px solid #232a39;color:var(--fg);padding:6px 10px;border-radius:8px;width:100%}
"""


def ensure_assets(templates_dir: Path, static_dir: Path) -> None:
    """Create templates/static on first run so the app is standalone."""
    templates_dir.mkdir(parents=True, exist_ok=True)
    static_dir.mkdir(parents=True, exist_ok=True)
    files = {
        templates_dir / "base.html": BASE_HTML,
        templates_dir / "index.html": INDEX_HTML,
        templates_dir / "gallery.html": GALLERY_HTML,
        templates_dir / "upload.html": UPLOAD_HTML,
        static_dir / "app.css": APP_CSS,
        static_dir / "feed.js": FEED_JS,
    }
    for p, content in files.items():
        if not p.exists():
            p.write_text(content, encoding="utf-8")
