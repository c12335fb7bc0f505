"""Public status: JSON state and the human-readable dashboard."""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from whatsgate.api.auth import get_gateway
from whatsgate.gateway.session import SessionGateway

router = APIRouter(tags=["status"])


@router.get("/api/estado")
def status(gateway: SessionGateway = Depends(get_gateway)) -> dict:
    """Connection state, pairing code while awaiting a scan, and readiness flag."""
    return gateway.status()


@router.get("/", response_class=HTMLResponse)
def dashboard() -> str:
    return _DASHBOARD_HTML


_DASHBOARD_HTML = """<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>WhatsApp API - Estado</title>
  <style>
    body { font-family: 'Segoe UI', Arial, sans-serif; max-width: 900px; margin: 0 auto;
           padding: 20px; background: #f0f2f5; color: #1f2937; }
    .panel { background: white; padding: 30px; border-radius: 12px;
             box-shadow: 0 4px 6px rgba(0,0,0,0.1); margin-bottom: 20px; }
    .estado { padding: 16px; border-radius: 8px; margin: 16px 0; font-weight: 600; text-align: center; }
    .conectado { background: #dcfce7; color: #166534; }
    .desconectado { background: #fef2f2; color: #dc2626; }
    .esperando { background: #fefce8; color: #ca8a04; }
    .cargando { background: #eff6ff; color: #1d4ed8; }
    .qr { font-family: monospace; font-size: 10px; background: #1f2937; color: #f9fafb;
          padding: 20px; border-radius: 8px; overflow: auto; word-break: break-all; }
    .endpoint { background: #f8fafc; padding: 12px; border-radius: 6px; margin: 8px 0;
                font-family: monospace; border-left: 4px solid #10b981; }
  </style>
  <script>
    const MENSAJES = {
      conectado: 'Conectado y listo para usar',
      esperando_qr: 'Esperando escaneo del c\\u00f3digo QR',
      autenticado: 'Autenticado, cargando...',
      inicializando: 'Inicializando...',
      desconectado: 'Desconectado',
      error_autenticacion: 'Error de autenticaci\\u00f3n'
    };

    function claseEstado(estado) {
      if (estado === 'conectado') return 'conectado';
      if (estado.startsWith('cargando') || estado === 'autenticado' || estado === 'inicializando') return 'cargando';
      if (estado === 'esperando_qr') return 'esperando';
      return 'desconectado';
    }

    function mensajeEstado(estado) {
      if (estado.startsWith('cargando_')) return 'Cargando... ' + estado.split('_')[1] + '%';
      return MENSAJES[estado] || estado;
    }

    function verificarEstado() {
      fetch('/api/estado')
        .then(r => r.json())
        .then(datos => {
          const el = document.getElementById('estado');
          el.textContent = mensajeEstado(datos.estado);
          el.className = 'estado ' + claseEstado(datos.estado);
          const qr = document.getElementById('qr');
          qr.style.display = datos.codigoQR ? 'block' : 'none';
          document.getElementById('qr-datos').textContent = datos.codigoQR || '';
          document.getElementById('version').textContent = 'v' + datos.version;
        })
        .catch(() => {
          const el = document.getElementById('estado');
          el.textContent = 'Error de conexi\\u00f3n';
          el.className = 'estado desconectado';
        });
    }

    document.addEventListener('DOMContentLoaded', () => {
      verificarEstado();
      setInterval(verificarEstado, 3000);
    });
  </script>
</head>
<body>
  <div class="panel">
    <h1>WhatsApp API - Estado del Servicio <small id="version"></small></h1>
    <div id="estado" class="estado cargando">Cargando...</div>
    <div id="qr" style="display: none;">
      <p>Abre WhatsApp &rarr; Dispositivos vinculados &rarr; Vincular un dispositivo, y usa este c&oacute;digo:</p>
      <pre id="qr-datos" class="qr"></pre>
    </div>
    <p><strong>Seguridad:</strong> todas las operaciones requieren un token.
       Usa <code>POST /api/auth</code> con tu contrase&ntilde;a para obtenerlo; expira en 24 horas.</p>
  </div>
  <div class="panel">
    <h2>Endpoints</h2>
    <div class="endpoint">POST /api/auth - Obtener token</div>
    <div class="endpoint">GET /api/estado - Estado (p&uacute;blico)</div>
    <div class="endpoint">POST /api/enviar-mensaje - Enviar mensaje</div>
    <div class="endpoint">GET /api/mensajes-recibidos?limpiar=true|false - Mensajes recibidos</div>
    <div class="endpoint">GET /api/contactos - Listar contactos</div>
    <div class="endpoint">GET /api/grupos - Listar grupos</div>
    <div class="endpoint">GET /api/verificar-numero/:numero - Verificar n&uacute;mero</div>
  </div>
</body>
</html>
"""
