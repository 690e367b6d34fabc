#!/usr/bin/env python3
"""
Script CLI pour les opérations de classement hors API
Import en masse de métriques (fichier JSON) et recalcul complet des scores
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from app.core.document_store import DocumentStore, get_document_store
from app.domain.exceptions import RankingError
from app.domain.services.metrics_service import metrics_service
from app.domain.services.ranking_engine import ranking_engine

# Configuration du logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class RankingCLI:
    """Interface CLI pour l'import de métriques et le recalcul des classements"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def load_input_file(self, input_file: str) -> List[Dict[str, Any]]:
        """Charge un fichier JSON : liste de métriques avec userId, ou objet {userId: métriques}"""
        with open(input_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if isinstance(data, dict):
            return [{**metrics, "userId": user_id} for user_id, metrics in data.items()]
        if isinstance(data, list):
            return data
        raise ValueError("Le fichier doit contenir une liste ou un objet JSON")

    async def import_metrics(self, submissions: List[Dict[str, Any]]) -> Dict[str, int]:
        """Soumet chaque entrée sans recalcul intermédiaire, puis met à jour le classement une fois"""
        report = {"imported": 0, "unchanged": 0, "rejected": 0}

        for submission in submissions:
            user_id = submission.get("userId")
            result = await metrics_service.submit_metrics(
                self.store, user_id, submission, recompute_rankings=False,
            )
            if not result["valid"]:
                logger.warning(f"⚠️  {user_id}: {result['errors']}")
                report["rejected"] += 1
            elif result["changed"]:
                report["imported"] += 1
            else:
                report["unchanged"] += 1

        if report["imported"]:
            await ranking_engine.update_rankings(self.store)

        logger.info(
            f"✅ Import terminé: {report['imported']} importées, "
            f"{report['unchanged']} inchangées, {report['rejected']} rejetées"
        )
        return report

    async def recalculate(self) -> int:
        """Recalcul complet des scores et des classements"""
        return await metrics_service.recalculate_all_scores(self.store)


def main():
    """Point d'entrée principal du script CLI"""
    parser = argparse.ArgumentParser(
        description="Opérations de classement BioLift",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemples d'utilisation:
  python ranking_cli.py import data/metrics.json
  python ranking_cli.py recalculate
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    import_parser = subparsers.add_parser('import', help='Importer des métriques depuis un fichier JSON')
    import_parser.add_argument('input_file', help='Fichier JSON d\'entrée')

    subparsers.add_parser('recalculate', help='Recalculer tous les scores et les classements')

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Afficher les logs détaillés'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    cli = RankingCLI(get_document_store())

    try:
        if args.command == 'import':
            if not Path(args.input_file).exists():
                print(f"❌ Erreur: Le fichier {args.input_file} n'existe pas")
                sys.exit(1)
            report = asyncio.run(cli.import_metrics(cli.load_input_file(args.input_file)))
            print(json.dumps(report, indent=2))
        else:
            processed = asyncio.run(cli.recalculate())
            print(f"✅ {processed} utilisateurs recalculés")
    except (RankingError, ValueError, OSError) as e:
        print(f"❌ Erreur lors de l'exécution: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
