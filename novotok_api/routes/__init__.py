from __future__ import annotations

from flask import Flask

from novotok_api.routes import aparelhos, auth, clientes, filiais, metas, produtos, usuarios, vendedores


BLUEPRINTS = (
	auth.bp,
	usuarios.bp,
	filiais.bp,
	vendedores.bp,
	clientes.bp,
	produtos.bp,
	aparelhos.bp,
	metas.grupos_bp,
	metas.lojas_bp,
)


def register_blueprints(app: Flask) -> None:
	for bp in BLUEPRINTS:
		app.register_blueprint(bp)
