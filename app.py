import io
import logging

from dotenv import load_dotenv
from flask import Flask, request, send_file, render_template_string, jsonify, session

# Load local .env before importing modules that read env vars at import time.
load_dotenv()

from bundler.config import GROUP_ORDER, MAX_UPLOAD_MB, SECRET_KEY, DOWNLOAD_NAME
from bundler.errors import AssemblyError, ErrorReason
from bundler.fonts import default_provider
from bundler.models import AssemblyOptions
from bundler.session import SessionRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_MB * 1024 * 1024
app.secret_key = SECRET_KEY

# One bundling session per browser, kept in memory only
SESSIONS = SessionRegistry(default_provider())

REASON_STATUS = {
    ErrorReason.EMPTY_INPUT: 400,
    ErrorReason.FONT_UNAVAILABLE: 409,
    ErrorReason.MALFORMED_SOURCE: 422,
}


def current_session():
    sid, state = SESSIONS.get(session.get('sid'))
    session['sid'] = sid
    return state


def error_response(exc: AssemblyError):
    body = {'error': exc.message, 'reason': exc.reason.value}
    if exc.source:
        body['source'] = exc.source
    return jsonify(body), REASON_STATUS[exc.reason]


def bad_kind(kind):
    return jsonify({'error': f'Unknown group: {kind}'}), 400


# --- FLASK ROUTES ---

@app.route('/')
def index():
    return render_template_string(HTML_TEMPLATE)

@app.route('/files', methods=['GET'])
def list_files():
    return jsonify(current_session().describe())

@app.route('/upload/<kind>', methods=['POST'])
def upload_file(kind):
    if kind not in GROUP_ORDER: return bad_kind(kind)
    uploads = [f for f in request.files.getlist('file') if f.filename]
    if not uploads: return jsonify({'error': 'No file part'}), 400

    state = current_session()
    try:
        added = state.add_files(kind, [(f.filename, f.read()) for f in uploads])
    except AssemblyError as exc:
        logger.warning("Rejected upload to %s: %s", kind, exc.message)
        return jsonify({'error': exc.message, 'reason': exc.reason.value}), 400

    group = state.group(kind)
    files = []
    for source in added:
        position = group.files.index(source)
        files.append({
            'id': source.id,
            'name': source.name,
            'pages': source.page_count,
            'label': group.label_for(position),
        })
    return jsonify({'files': files, 'message': 'Upload successful'})

@app.route('/files/<kind>/<file_id>', methods=['DELETE'])
def remove_file(kind, file_id):
    if kind not in GROUP_ORDER: return bad_kind(kind)
    if not current_session().remove_file(kind, file_id):
        return jsonify({'error': 'File not found'}), 404
    return jsonify({'removed': file_id})

@app.route('/groups/<kind>', methods=['POST'])
def configure_group(kind):
    if kind not in GROUP_ORDER: return bad_kind(kind)
    data = request.get_json(silent=True) or {}
    try:
        current_session().configure_group(
            kind,
            label_prefix=data.get('label_prefix'),
            start_index=data.get('start_index'),
        )
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(current_session().describe())

@app.route('/assemble', methods=['POST'])
def assemble():
    data = request.get_json(silent=True) or {}
    state = current_session()
    font_size = data.get('font_size', state.options.font_size)
    pad_odd_pages = data.get('pad_odd_pages', state.options.pad_odd_pages)
    if isinstance(font_size, bool) or not isinstance(font_size, (int, float)):
        return jsonify({'error': 'font_size must be a number'}), 400
    if not isinstance(pad_odd_pages, bool):
        return jsonify({'error': 'pad_odd_pages must be true or false'}), 400
    try:
        options = AssemblyOptions(
            font_size=float(font_size),
            pad_odd_pages=pad_odd_pages,
            require_embedded_font=state.require_font,
        )
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400

    try:
        result = state.assemble(options)
    except AssemblyError as exc:
        return error_response(exc)

    return jsonify({
        'pages': result.page_count,
        'font': state.font_status(),
        'preview_url': '/preview',
        'download_url': '/download',
    })

@app.route('/preview', methods=['GET'])
def preview():
    output = current_session().output
    if output is None: return jsonify({'error': 'Nothing assembled yet'}), 404
    return send_file(io.BytesIO(output.data), mimetype='application/pdf', max_age=0)

@app.route('/download', methods=['GET'])
def download():
    output = current_session().output
    if output is None: return jsonify({'error': 'Nothing assembled yet'}), 404
    return send_file(
        io.BytesIO(output.data),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=DOWNLOAD_NAME,
    )

@app.route('/font/reload', methods=['POST'])
def reload_font():
    return jsonify({'font': current_session().reload_font()})

@app.route('/reset', methods=['POST'])
def reset():
    SESSIONS.drop(session.pop('sid', None))
    return jsonify({'message': 'Session cleared'})


# --- FRONTEND TEMPLATE ---
HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="zh-Hant">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>PDF 文件整合系統</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <script crossorigin src="https://unpkg.com/react@18/umd/react.production.min.js"></script>
    <script crossorigin src="https://unpkg.com/react-dom@18/umd/react-dom.production.min.js"></script>
    <script src="https://unpkg.com/@babel/standalone/babel.min.js"></script>

    <style>
        body { font-family: 'Segoe UI', 'Noto Sans TC', sans-serif; }
    </style>
</head>
<body class="min-h-screen bg-gradient-to-br from-slate-50 to-blue-50 text-slate-800">
    <div id="root"></div>

    <script type="text/babel">
        const { useState, useEffect } = React;

        const GROUPS = [
            { kind: 'main', title: '書狀本文', hint: '點擊上傳主要文件', multiple: false },
            { kind: 'attachment', title: '附件', hint: '添加附件', multiple: true },
            { kind: 'evidence', title: '證物', hint: '添加證物', multiple: true },
        ];

        const IconUpload = () => <svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24" fill="none" stroke="currentColor" strokeWidth="2"><path d="M21 15v4a2 2 0 0 1-2 2H5a2 2 0 0 1-2-2v-4"/><polyline points="17 8 12 3 7 8"/><line x1="12" y1="3" x2="12" y2="15"/></svg>;
        const IconTrash = () => <svg xmlns="http://www.w3.org/2000/svg" width="18" height="18" viewBox="0 0 24 24" fill="none" stroke="currentColor" strokeWidth="2"><polyline points="3 6 5 6 21 6"/><path d="M19 6v14a2 2 0 0 1-2 2H7a2 2 0 0 1-2-2V6m3 0V4a2 2 0 0 1 2-2h4a2 2 0 0 1 2 2v2"/></svg>;

        function GroupPanel({ group, state, onUpload, onRemove, onConfigure }) {
            const files = state ? state.files : [];
            return (
                <div className="bg-white rounded-xl shadow-lg p-6 border border-slate-200">
                    <h2 className="text-xl font-semibold text-slate-800 mb-4">{group.title}</h2>
                    {group.kind !== 'main' && state && (
                        <div className="flex gap-3 mb-4 text-sm">
                            <label className="flex items-center gap-2">標籤
                                <input className="border rounded px-2 py-1 w-24" defaultValue={state.label_prefix}
                                    onBlur={(e) => onConfigure(group.kind, { label_prefix: e.target.value })} />
                            </label>
                            <label className="flex items-center gap-2">起始編號
                                <input type="number" min="1" className="border rounded px-2 py-1 w-20" defaultValue={state.start_index}
                                    onBlur={(e) => onConfigure(group.kind, { start_index: Number(e.target.value) })} />
                            </label>
                        </div>
                    )}
                    <div className="space-y-3">
                        {files.map(f => (
                            <div key={f.id} className="flex items-center justify-between bg-slate-50 p-3 rounded-lg">
                                <span className="text-slate-700 font-medium">{f.label}</span>
                                <button onClick={() => onRemove(group.kind, f.id)} className="text-red-500 hover:text-red-700"><IconTrash /></button>
                            </div>
                        ))}
                        {(group.multiple || files.length === 0) && (
                            <label className="cursor-pointer border-2 border-dashed border-slate-300 rounded-lg p-4 text-center hover:border-blue-400 transition-colors block">
                                <div className="flex justify-center text-slate-400 mb-2"><IconUpload /></div>
                                <p className="text-slate-600">{group.hint}</p>
                                <p className="text-sm text-slate-500">支援 PDF 格式</p>
                                <input type="file" accept=".pdf" multiple={group.multiple} className="hidden"
                                    onChange={(e) => { onUpload(group.kind, e.target.files); e.target.value = ''; }} />
                            </label>
                        )}
                    </div>
                </div>
            );
        }

        function App() {
            const [state, setState] = useState(null);
            const [fontSize, setFontSize] = useState(16);
            const [padOdd, setPadOdd] = useState(true);
            const [isProcessing, setIsProcessing] = useState(false);
            const [previewUrl, setPreviewUrl] = useState(null);

            const refresh = () => fetch('/files').then(r => r.json()).then(setState);
            useEffect(() => { refresh(); }, []);

            const handleUpload = async (kind, fileList) => {
                if (!fileList || fileList.length === 0) return;
                const fd = new FormData();
                Array.from(fileList).forEach(f => fd.append('file', f));
                const res = await fetch(`/upload/${kind}`, { method: 'POST', body: fd });
                if (!res.ok) { const data = await res.json(); alert(data.error); }
                refresh();
            };

            const handleRemove = async (kind, id) => {
                await fetch(`/files/${kind}/${id}`, { method: 'DELETE' });
                refresh();
            };

            const handleConfigure = async (kind, body) => {
                const res = await fetch(`/groups/${kind}`, { method: 'POST', headers: { 'Content-Type': 'application/json' }, body: JSON.stringify(body) });
                const data = await res.json();
                if (!res.ok) alert(data.error); else setState(data);
            };

            const handleReloadFont = async () => {
                await fetch('/font/reload', { method: 'POST' });
                refresh();
            };

            const isEmpty = !state || GROUPS.every(g => state.groups[g.kind].files.length === 0);

            const handleSubmit = async () => {
                setIsProcessing(true);
                try {
                    const res = await fetch('/assemble', { method: 'POST', headers: { 'Content-Type': 'application/json' }, body: JSON.stringify({ font_size: fontSize, pad_odd_pages: padOdd }) });
                    const data = await res.json();
                    if (!res.ok) { setPreviewUrl(null); throw new Error(data.error || '處理PDF時發生錯誤，請檢查檔案格式'); }
                    setPreviewUrl(`${data.preview_url}?t=${Date.now()}`);
                } catch (err) { alert(err.message); } finally { setIsProcessing(false); }
            };

            return (
                <div className="container mx-auto px-4 py-8">
                    <header className="text-center mb-8">
                        <h1 className="text-4xl font-bold text-slate-800 mb-2">PDF 文件整合系統</h1>
                        <p className="text-slate-600">上傳、編輯並整合您的PDF文件</p>
                        {state && state.font === 'fallback' && <p className="text-amber-600 text-sm mt-2">中文字體未載入，將使用內建字體 <button onClick={handleReloadFont} className="underline">重新載入</button></p>}
                    </header>
                    <div className="grid grid-cols-1 lg:grid-cols-2 gap-8">
                        <div className="space-y-6">
                            {GROUPS.map(g => <GroupPanel key={g.kind} group={g} state={state && state.groups[g.kind]} onUpload={handleUpload} onRemove={handleRemove} onConfigure={handleConfigure} />)}
                            <div className="bg-white rounded-xl shadow-lg p-6 border border-slate-200 space-y-4">
                                <h2 className="text-xl font-semibold text-slate-800">文字設定</h2>
                                <label className="block text-sm font-medium text-slate-700">字體大小: {fontSize}pt</label>
                                <input type="range" min="10" max="30" value={fontSize} onChange={(e) => setFontSize(Number(e.target.value))} className="w-full" />
                                <label className="flex items-center gap-3 cursor-pointer select-none text-sm text-slate-700">
                                    <input type="checkbox" checked={padOdd} onChange={() => setPadOdd(!padOdd)} />
                                    奇數頁檔案補空白頁（雙面列印）
                                </label>
                            </div>
                            <button onClick={handleSubmit} disabled={isProcessing || isEmpty} className="w-full bg-blue-600 hover:bg-blue-700 disabled:bg-slate-400 text-white font-semibold py-4 px-6 rounded-lg transition-colors">
                                {isProcessing ? '處理中...' : '整合文件'}
                            </button>
                        </div>
                        <div className="bg-white rounded-xl shadow-lg p-6 border border-slate-200">
                            <h2 className="text-xl font-semibold text-slate-800 mb-4">預覽</h2>
                            {previewUrl ? (
                                <div className="space-y-4">
                                    <div className="text-center">
                                        <span className="text-slate-600 block mb-4">整合完成</span>
                                        <a href="/download" className="bg-green-600 hover:bg-green-700 text-white px-6 py-3 rounded-lg inline-block">下載整合文件</a>
                                    </div>
                                    <iframe src={previewUrl} className="w-full h-[36rem] border rounded-lg" title="PDF Preview" />
                                </div>
                            ) : (
                                <div className="text-center py-16 text-slate-500">上傳檔案並點擊整合後，預覽將顯示在這裡</div>
                            )}
                        </div>
                    </div>
                </div>
            );
        }

        const root = ReactDOM.createRoot(document.getElementById('root'));
        root.render(<App />);
    </script>
</body>
</html>
"""

if __name__ == '__main__':
    logger.info("Open http://127.0.0.1:5000 in your browser")
    app.run(host='127.0.0.1', debug=True, port=5000)
