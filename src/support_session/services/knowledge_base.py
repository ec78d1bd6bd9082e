from __future__ import annotations

from typing import Iterable

DEFAULT_ENTRIES: tuple[tuple[str, str], ...] = (
    (
        "comment acheter des stocks",
        """Pour acheter des stocks sur MyLb :

📈 **Processus d'achat complet :**
1. **Connexion** → Accédez à votre compte MyLb
2. **Navigation** → Section "Marché" ou "Bourse"
3. **Recherche** → Trouvez l'entreprise souhaitée
4. **Sélection** → Cliquez sur "Acheter"
5. **Quantité** → Entrez le nombre d'actions
6. **Validation** → Confirmez la transaction

💡 **Fonctions avancées :**
• Achat rapide pour actions populaires
• Ordres limites pour prix spécifiques
• Alertes de prix personnalisées""",
    ),
    (
        "comment vendre mes actions",
        """Pour vendre vos actions sur MyLb :

💰 **Processus de vente détaillé :**
1. **Portefeuille** → Accédez à vos investissements
2. **Sélection** → Choisissez les actions à vendre
3. **Option vente** → Cliquez sur "Vendre"
4. **Quantité** → Sélectionnez le nombre d'actions
5. **Confirmation** → Validez la transaction

⚡ **Avantages :**
• Exécution instantanée
• Frais transparents
• Solde crédité immédiatement""",
    ),
    (
        "comment vérifier mon solde",
        """Pour vérifier votre solde MyLb :

🏦 **Multiples méthodes disponibles :**

**Tableau de bord principal :**
• Solde total affiché en haut
• Détail par type d'actif
• Évolution sur 24h

**Section Portefeuille :**
• Détail complet des investissements
• Répartition par secteur
• Performance historique""",
    ),
    (
        "problème avec ma transaction",
        """En cas de problème de transaction :

🔧 **Guide de dépannage complet :**

**Vérifications immédiates :**
1. Connexion internet stable
2. Solde suffisant disponible
3. Heures de marché (9h-17h30)
4. Statut du compte vérifié

**Étapes de résolution :**
1. Consultez l'historique des transactions
2. Vérifiez les emails de confirmation
3. Redémarrez l'application
4. Contactez le support si nécessaire""",
    ),
    (
        "comment créer une entreprise",
        """Pour créer une entreprise sur MyLb :

🏢 **Processus de création étape par étape :**

**1. Préparation :**
• Documents d'identité
• Justificatif de domicile
• Statuts de l'entreprise
• KBIS existant (si applicable)

**2. Enregistrement :**
• Rendez-vous dans "Mon Entreprise"
• Cliquez sur "Créer une entreprise"
• Remplissez le formulaire en ligne
• Téléchargez les documents

**3. Validation :**
• Vérification par notre équipe
• Activation sous 48h
• Notification par email""",
    ),
    (
        "contacter support",
        """Options de contact support :

📞 **Support téléphonique :**
• Numéro : 01 23 45 67 89
• Horaires : Lun-Ven 8h-20h
• Urgences : 24h/24

📧 **Email :**
• support@mylb.fr
• Réponse sous 4h
• Pièces jointes acceptées

💬 **Chat en direct :**
• Disponible sur l'application
• Temps d'attente : < 5min
• Historique conservé""",
    ),
)

FALLBACK_TEMPLATE = """🤖 **Assistant MyLb**

Je comprends que vous avez besoin d'aide avec : "{text}"

Malheureusement, je n'ai pas d'information spécifique sur ce sujet dans ma base de connaissances.

🛟 **Je vous recommande de :**
• Contacter notre support humain pour une assistance personnalisée
• Envoyer un email détaillé à notre équipe technique
• Consulter notre centre d'aide en ligne

Souhaitez-vous que je vous mette en relation avec un expert ?"""


def _normalize(text: str) -> str:
    return text.lower().strip()


def _matches(text: str, question: str) -> bool:
    return text == question or question in text or text in question


class KnowledgeBase:
    """Canned answers keyed by question; the first matching entry wins.

    An input matches a question when, after lowercasing and trimming, either
    one contains the other. Entries are tried in declaration order, then once
    more with the first question mark removed.
    """

    def __init__(
        self,
        entries: Iterable[tuple[str, str]] = DEFAULT_ENTRIES,
        *,
        fallback_template: str = FALLBACK_TEMPLATE,
    ) -> None:
        self._entries = [(_normalize(q), r) for q, r in entries]
        self._fallback_template = fallback_template

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, text: str) -> str | None:
        normalized = _normalize(text)
        if not normalized:
            return None
        for question, response in self._entries:
            if _matches(normalized, question):
                return response

        stripped = normalized.replace("?", "", 1).strip()
        if not stripped:
            return None
        for question, response in self._entries:
            if _matches(stripped, question.replace("?", "", 1).strip()):
                return response
        return None

    def fallback(self, text: str) -> str:
        return self._fallback_template.format(text=text.strip())

    def respond(self, text: str) -> str:
        return self.lookup(text) or self.fallback(text)
